"""auth/ -- Authentication, session and CSRF package for the blog API.

Layer rule: auth/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/ or blog/.
api/ imports from auth/, not the other way around.
"""
