"""Version V006: Drop stored artwork, record the account's server API.

Artwork blobs moved to the file cache long ago; the table is removed.
Accounts record which server API (ampache or subsonic) they talk to.
"""

VERSION = 6
IDENTIFIER = "library v6"
DESCRIPTION = "Drop artworks table; add accounts.api_type"

SCHEMA_SQL = """
CREATE TABLE accounts (
    id INTEGER PRIMARY KEY,
    server_url TEXT NOT NULL,
    username TEXT NOT NULL,
    api_type TEXT NOT NULL DEFAULT 'ampache'
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

CREATE INDEX idx_songs_album ON songs(album_id);
CREATE INDEX idx_albums_artist ON albums(artist_id);
CREATE INDEX idx_songs_added_date ON songs(added_date);
CREATE INDEX idx_songs_account ON songs(account_id);
"""

UP_SQL = """
DROP TABLE artworks;
ALTER TABLE accounts ADD COLUMN api_type TEXT NOT NULL DEFAULT 'ampache';
"""
