"""Version V003: Track when a song was added to the library."""

VERSION = 3
IDENTIFIER = "library v3"
DESCRIPTION = "Add songs.added_date"

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
    year INTEGER,
    duration INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE songs (
    id INTEGER PRIMARY KEY,
    remote_id TEXT NOT NULL,
    title TEXT NOT NULL,
    album_id INTEGER REFERENCES albums(id),
    artist_id INTEGER REFERENCES artists(id),
    track INTEGER,
    duration INTEGER NOT NULL DEFAULT 0,
    is_cached INTEGER NOT NULL DEFAULT 0,
    added_date TIMESTAMP
);

CREATE TABLE playlists (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    duration INTEGER NOT NULL DEFAULT 0
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
CREATE INDEX idx_songs_added_date ON songs(added_date);
"""

UP_SQL = """
-- Existing songs have no known add date; the next sync fills it in
ALTER TABLE songs ADD COLUMN added_date TIMESTAMP;
CREATE INDEX IF NOT EXISTS idx_songs_added_date ON songs(added_date);
"""
