"""Version V001: Initial library schema.

Artists, albums, songs, playlists with ordered items, and cached artwork
blobs.
"""

VERSION = 1
IDENTIFIER = "library v1"
DESCRIPTION = "Initial library schema"

SCHEMA_SQL = """
CREATE TABLE artists (
    id INTEGER PRIMARY KEY,
    remote_id TEXT NOT NULL,
    name TEXT NOT NULL
);

CREATE TABLE albums (
    id INTEGER PRIMARY KEY,
    remote_id TEXT NOT NULL,
    name TEXT NOT NULL,
    artist_id INTEGER REFERENCES artists(id),
    year INTEGER
);

CREATE TABLE songs (
    id INTEGER PRIMARY KEY,
    remote_id TEXT NOT NULL,
    title TEXT NOT NULL,
    album_id INTEGER REFERENCES albums(id),
    artist_id INTEGER REFERENCES artists(id),
    track INTEGER,
    duration INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE playlists (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL
);

CREATE TABLE playlist_items (
    playlist_id INTEGER NOT NULL REFERENCES playlists(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    song_id INTEGER NOT NULL REFERENCES songs(id),
    PRIMARY KEY (playlist_id, position)
);

CREATE TABLE artworks (
    id INTEGER PRIMARY KEY,
    url TEXT NOT NULL,
    image BLOB
);

CREATE INDEX idx_songs_album ON songs(album_id);
CREATE INDEX idx_albums_artist ON albums(artist_id);
"""
