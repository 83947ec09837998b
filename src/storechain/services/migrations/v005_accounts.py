"""Version V005: Account support.

Introduces the accounts table (server URL + user). Every library entity
now belongs to an account; existing rows are assigned to a placeholder
account that the app completes on the next login.
"""

VERSION = 5
IDENTIFIER = "library v5"
DESCRIPTION = "Add accounts and per-entity account_id"

SCHEMA_SQL = """
CREATE TABLE accounts (
    id INTEGER PRIMARY KEY,
    server_url TEXT NOT NULL,
    username TEXT NOT NULL
);

CREATE TABLE artists (
    id INTEGER PRIMARY KEY,
    remote_id TEXT NOT NULL,
    name TEXT NOT NULL,
    account_id INTEGER REFERENCES accounts(id)
);

CREATE TABLE albums (
    id INTEGER PRIMARY KEY,
    remote_id TEXT NOT NULL,
    name TEXT NOT NULL,
    artist_id INTEGER REFERENCES artists(id),
    year INTEGER,
    duration INTEGER NOT NULL DEFAULT 0,
    account_id INTEGER REFERENCES accounts(id)
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
    added_date TIMESTAMP,
    replay_gain REAL NOT NULL DEFAULT 0,
    replay_peak REAL NOT NULL DEFAULT 0,
    account_id INTEGER REFERENCES accounts(id)
);

CREATE TABLE playlists (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    duration INTEGER NOT NULL DEFAULT 0,
    account_id INTEGER REFERENCES accounts(id)
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
CREATE INDEX idx_songs_account ON songs(account_id);
"""

UP_SQL = """
CREATE TABLE accounts (
    id INTEGER PRIMARY KEY,
    server_url TEXT NOT NULL,
    username TEXT NOT NULL
);

-- Placeholder account owning everything synced before accounts existed
INSERT INTO accounts (id, server_url, username) VALUES (1, '', '');

ALTER TABLE artists ADD COLUMN account_id INTEGER REFERENCES accounts(id);
ALTER TABLE albums ADD COLUMN account_id INTEGER REFERENCES accounts(id);
ALTER TABLE songs ADD COLUMN account_id INTEGER REFERENCES accounts(id);
ALTER TABLE playlists ADD COLUMN account_id INTEGER REFERENCES accounts(id);

UPDATE artists SET account_id = 1;
UPDATE albums SET account_id = 1;
UPDATE songs SET account_id = 1;
UPDATE playlists SET account_id = 1;

CREATE INDEX IF NOT EXISTS idx_songs_account ON songs(account_id);
"""
