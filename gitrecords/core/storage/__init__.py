"""Storage layer: path mapping, codec, snapshots, diffs and commits."""
