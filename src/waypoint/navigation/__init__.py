"""Navigation — per-node controllers and the tree that links them.

Each routed subtree mounts a controller. Controllers announce themselves
through their host, are claimed by the nearest active ancestor, and
receive tail matches from it on every commit.
"""
