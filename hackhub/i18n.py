# i18n.py
import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from hackhub.config import Settings

LOCALES_DIR = Path(__file__).parent / "data" / "locales"

LANG_CODES = {"en": "english"}


def lang_code2language(lang_code: Optional[str]) -> str:
	"""Map a client language code (``en``) to a locale directory name."""
	if lang_code is None:
		return Settings().default_language
	return LANG_CODES.get(lang_code.split("-")[0].lower(), Settings().default_language)


@lru_cache(maxsize=None)
def _catalog(lang: str, name: str) -> dict[str, Any]:
	path = LOCALES_DIR / lang / f"{name}.json"
	if not path.is_file():
		return {}
	with open(path, encoding="utf-8") as file:
		return json.load(file)


class Localizer:
	"""
	Renders ``str.format`` templates addressed as ``<file>.<key>[.<key>...]``.

	``notifications.team_rejected.body`` reads ``body`` of ``team_rejected`` in
	``data/locales/<lang>/notifications.json``. Keys absent from the requested
	language are looked up in the default language.
	"""

	def __init__(self, lang: Optional[str] = None):
		default = Settings().default_language
		lang = lang or default
		self.lang = lang if (LOCALES_DIR / lang).is_dir() else default
		self._fallback = default if default != self.lang else None

	def _lookup(self, lang: str, key: str) -> Optional[str]:
		name, _, rest = key.partition(".")
		node: Any = _catalog(lang, name)
		for part in rest.split(".") if rest else ():
			if not isinstance(node, dict) or part not in node:
				return None
			node = node[part]
		return node if isinstance(node, str) else None

	def template(self, key: str) -> str:
		template = self._lookup(self.lang, key)
		if template is None and self._fallback is not None:
			template = self._lookup(self._fallback, key)
		if template is None:
			raise KeyError(f"Translation key {key!r} is not found for language {self.lang!r}")
		return template

	def get(self, key: str, **kwargs: Any) -> str:
		return self.template(key).format(**kwargs)

	def __call__(self, key: str, **kwargs: Any) -> str:
		return self.get(key, **kwargs)
