import os

# Console logging only; must be set before the logger singleton is created.
os.environ.setdefault("TELEWIRE_LOG_DIR", "")
