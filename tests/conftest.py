"""
Test configuration
Environment variables must be set before the application settings load
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("AUTO_APPROVE_WITHOUT_RULE", "false")
