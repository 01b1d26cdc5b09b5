SECRET_KEY = "not-a-secret"

DEBUG = True

ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django_agent_memory",
    "testapp",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

ROOT_URLCONF = "testapp.urls"

USE_TZ = True

AGENT_MEMORY = {
    "EMBEDDING": {
        "API_KEY": "",
        "DIMENSIONS": 64,
    },
    "STORAGE": {
        "BACKEND": "inmemory",
    },
    "SEARCH": {
        "SCOPE_TIMEOUT": 2.0,
    },
    "AGENTS_DIR": "/nonexistent/agents",
    "WORKSPACE_ROOT": "/nonexistent",
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"console": {"class": "logging.StreamHandler"}},
    "loggers": {
        "django_agent_memory": {"handlers": ["console"], "level": "WARNING"},
    },
}
