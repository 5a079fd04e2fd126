from .module import ModuleId, parse_module_id

__all__ = ["ModuleId", "parse_module_id"]
