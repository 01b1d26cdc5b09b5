from django.urls import path

from .views import IndexView, SearchView


def memory_urls() -> list:
    """
    Generate URL patterns for the memory index API.

    Returns:
        List of URL patterns

    Example:
        # In your main urls.py
        from django_agent_memory.index.urls import memory_urls

        urlpatterns = [
            # ... your other URLs
            path("api/memory/", include(memory_urls())),
        ]
    """
    return [
        path("search/", SearchView.as_view(), name="memory_search"),
        path("index/", IndexView.as_view(), name="memory_index"),
    ]


urlpatterns = memory_urls()
