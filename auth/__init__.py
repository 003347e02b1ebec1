"""auth/ -- Authentication, sessions, and authorization guards for CampReview.

Layer rule: auth/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or campgrounds/.
api/ imports from auth/, not the other way around.
"""
