"""
Main API configuration for Django Ninja Extra.
All API controllers are automatically registered here.
"""

import importlib
import inspect
import logging

from ninja_extra import NinjaExtraAPI

from ethics_backend.core.api.base import BaseAPI

logger = logging.getLogger(__name__)

api = NinjaExtraAPI(
    title="Ethics Review API",
    version="1.0.0",
    description="Backend API of the research ethics review office",
    docs_url="/docs",
    openapi_url="/openapi.json",
)


def register_controllers_from_module(api_instance: NinjaExtraAPI, module_path: str) -> None:
    """
    Import ``module_path`` and register the controllers it exposes.

    Controllers must inherit from BaseAPI to be registered.
    """
    try:
        module = importlib.import_module(module_path)
    except ModuleNotFoundError:
        logger.debug("Module %s not found, skipping", module_path)
        return

    for attr_name in dir(module):
        attr = getattr(module, attr_name)
        if inspect.isclass(attr) and issubclass(attr, BaseAPI) and attr is not BaseAPI:
            logger.debug("Registering controller: %s.%s", module_path, attr_name)
            api_instance.register_controllers(attr)


# Register controllers from each local app
LOCAL_APPS = [
    "ethics_backend.users",
    "ethics_backend.applications",
    "ethics_backend.realtime",
]

for app in LOCAL_APPS:
    register_controllers_from_module(api, f"{app}.api")
