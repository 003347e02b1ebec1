"""campgrounds/ -- Campground and review entities and their store.

Layer rule: campgrounds/ imports only stdlib + third-party libraries + core/.
It knows users only by id (owner_id); resolving ids to users is api/'s job.
"""
