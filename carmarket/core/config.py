import os

# JWT
JWT_SECRET = os.getenv("JWT_SECRET")  # required, no default
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ACCESS_EXP_SECONDS = int(os.getenv("JWT_ACCESS_EXP_SECONDS", "86400"))  # 24 hours
JWT_REFRESH_EXP_SECONDS = int(os.getenv("JWT_REFRESH_EXP_SECONDS", "604800"))  # 7 days

# Cache
CACHE_PREFIX = os.getenv("CACHE_PREFIX", "carmarket")

# Image storage
IMAGE_STORAGE_DIR = os.getenv("IMAGE_STORAGE_DIR", "/tmp/carmarket/images")
IMAGE_BASE_URL = os.getenv("IMAGE_BASE_URL", "http://localhost:8000/api/images/serve")

# E-mail
EMAIL_NOTIFICATIONS_ENABLED = os.getenv("EMAIL_NOTIFICATIONS_ENABLED", "false").lower() == "true"
EMAIL_FROM = os.getenv("EMAIL_FROM", "noreply@carmarket.local")
SMTP_HOST = os.getenv("SMTP_HOST", "localhost")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# HTTP
CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Seed data
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@carmarket.local")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
