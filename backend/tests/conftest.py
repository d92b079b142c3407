import os

# Token signing needs a key; outside development there is no built-in one.
os.environ.setdefault("JWT_SECRET", "finance-tracker-test-secret")
