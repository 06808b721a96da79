"""auth/ -- Authentication, session lifecycle, and RBAC lookup for UserHub.

Layer rule: auth/ imports only stdlib, third-party libraries, core/, and
mail/ (for the verification email). It never imports from api/.
auth/dependencies.py is the only module here that imports fastapi.
api/ imports from auth/, not the other way around.
"""
