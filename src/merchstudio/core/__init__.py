"""Core functionality for design generation and persistence.

- **tools**: declarative descriptors for every design tool
- **prompt_builder**: template filling and the shared aspect ratio table
- **providers**: OpenAI and Gemini image adapters behind one interface
- **asset_store**: image files in the asset directory
- **record_store**: per-tool JSON design stores
- **pipeline**: validate, prompt, generate, save, record
- **library**: cross-store media library and reference picker
- **admin**: publish toggles, product catalog, orders
- **ideas**: chat-model T-shirt idea generator
- **editor**: prompt edits of a stored design with undo and rollback
- **settings_store**: runtime API keys in ``config.json``
- **config**: process settings from ``MERCHSTUDIO_*`` variables

Architecture Overview
---------------------
1. **Configuration Layer** (config.py, settings_store.py)
2. **Provider Layer** (providers.py): one adapter per external API, selected
   through ``provider_registry``
3. **Storage Layer** (json_store.py, record_store.py, asset_store.py):
   locked, atomic JSON files and a flat image directory
4. **Pipeline Layer** (pipeline.py, library.py, admin.py, ideas.py, editor.py)

Usage Example
-------------
::

    from merchstudio.core import DesignPipeline, config
    from merchstudio.core.asset_store import AssetStore
    from merchstudio.core.record_store import DesignRecordStore
    from merchstudio.core.settings_store import SettingsStore

    pipeline = DesignPipeline(
        config,
        DesignRecordStore(config.data_dir),
        AssetStore(config.assets_dir, config.assets_url_prefix),
        SettingsStore(config),
    )
    design = pipeline.generate("flyer", {"title_text": "Summer Fest", "graphic_prompt": "sun"})
"""

from merchstudio.core.config import StudioConfig, config
from merchstudio.core.pipeline import DesignPipeline
from merchstudio.core.providers import ImageProvider, provider_registry
from merchstudio.core.tools import TOOLS, get_tool

__all__ = [
    "DesignPipeline",
    "ImageProvider",
    "provider_registry",
    "StudioConfig",
    "config",
    "TOOLS",
    "get_tool",
]
