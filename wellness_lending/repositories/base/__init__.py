from wellness_lending.repositories.base.base_repository import BaseRepository, translate_db_error

__all__ = ["BaseRepository", "translate_db_error"]
