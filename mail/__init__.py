"""mail/ -- Outbound email for UserHub (SMTP delivery + Jinja2 templates).

Layer rule: mail/ imports auth.models (for EmailMessage) and core/ only.
It does NOT import from api/ or the auth services.
"""
