"""Version V002: Cached flag for songs, durations for collections.

Songs get an is_cached flag; albums and playlists carry their total
duration, backfilled from their songs.
"""

VERSION = 2
IDENTIFIER = "library v2"
DESCRIPTION = "Add songs.is_cached and album/playlist durations"

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
    is_cached INTEGER NOT NULL DEFAULT 0
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
"""

UP_SQL = """
ALTER TABLE songs ADD COLUMN is_cached INTEGER NOT NULL DEFAULT 0;
ALTER TABLE albums ADD COLUMN duration INTEGER NOT NULL DEFAULT 0;
ALTER TABLE playlists ADD COLUMN duration INTEGER NOT NULL DEFAULT 0;

-- Backfill collection durations from their songs
UPDATE albums SET duration = (
    SELECT COALESCE(SUM(songs.duration), 0) FROM songs WHERE songs.album_id = albums.id
);
UPDATE playlists SET duration = (
    SELECT COALESCE(SUM(songs.duration), 0)
    FROM playlist_items JOIN songs ON songs.id = playlist_items.song_id
    WHERE playlist_items.playlist_id = playlists.id
);
"""
