"""MP3 shuffle player: ID3 tag reading and non-repeating shuffle playback."""
