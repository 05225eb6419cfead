import os

os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
