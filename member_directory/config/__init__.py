from member_directory.config.settings import settings, Settings

__all__ = ["settings", "Settings"]
