import importlib
import inspect
from typing import Any, Dict, Optional

import httpx

from .base import BaseProvider, ChatType, ChatCompletionStream
from ..core.exceptions import ProviderConfigError
from ..core.logging import logger


def _load_factory(chat_type: str, path: str):
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ProviderConfigError(chat_type, f"factory must look like 'package.module:callable', got '{path}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ProviderConfigError(chat_type, f"cannot import '{module_name}'", e) from e
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ProviderConfigError(chat_type, f"'{module_name}' has no attribute '{attr}'", e) from e


def get_provider_instance(chat_type: str, provider_config: Dict[str, Any], max_tokens: int,
                          enable_context: bool, client: Optional[httpx.AsyncClient] = None) -> BaseProvider:
    """Build the client for one ``providers:`` block of the chat configuration.

    The block's ``factory`` names a callable taking
    ``(config, max_tokens, enable_context)`` and, optionally, ``client``.
    """
    factory_path = provider_config.get("factory")
    if not factory_path:
        raise ProviderConfigError(chat_type, "factory is not configured")

    factory = _load_factory(chat_type, factory_path)
    settings = {k: v for k, v in provider_config.items() if k != "factory"}

    kwargs = {}
    try:
        if client is not None and "client" in inspect.signature(factory).parameters:
            kwargs["client"] = client
    except (TypeError, ValueError):
        pass

    try:
        provider = factory(settings, max_tokens, enable_context, **kwargs)
    except ProviderConfigError:
        raise
    except Exception as e:
        raise ProviderConfigError(chat_type, str(e), e) from e

    logger.info(f"Provider '{chat_type}' initialized", chat_type=chat_type, factory=factory_path)
    return provider


__all__ = ["BaseProvider", "ChatType", "ChatCompletionStream", "get_provider_instance"]
