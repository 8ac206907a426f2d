from pathlib import Path
from typing import Any, MutableMapping

from jinja2 import BaseLoader, ChoiceLoader, Environment, FileSystemLoader, PackageLoader, PrefixLoader, \
    StrictUndefined, Template


class TemplateEnvironment(Environment):
    """Jinja environment for the agent prompts.

    Templates are looked up as ``<lang>/<name>``.  Each language is served by
    the templates packaged with toolpilot, optionally shadowed by the matching
    ``<lang>`` folder under *override_dir*.
    """

    def __init__(self, package_name: str = 'toolpilot', default_lang: str | None = None,
                 langs: tuple[str, ...] = ('en',), override_dir: str | Path | None = None):
        self.default_lang = default_lang or 'en'
        self.langs = tuple(dict.fromkeys((*langs, self.default_lang)))
        self.lang_loaders: dict[str, list[BaseLoader]] = {}
        for lang in self.langs:
            loaders: list[BaseLoader] = [PackageLoader(package_name, package_path=f"templates/{lang}")]
            if override_dir is not None and (Path(override_dir) / lang).is_dir():
                loaders.insert(0, FileSystemLoader(Path(override_dir) / lang))
            self.lang_loaders[lang] = loaders
        super().__init__(
            loader=self._prefix_loader(),
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
            autoescape=False,
        )

    def _prefix_loader(self) -> PrefixLoader:
        return PrefixLoader({lang: ChoiceLoader(loaders) for lang, loaders in self.lang_loaders.items()})

    def add_loaders(self, lang: str, *loaders: BaseLoader):
        """Consult *loaders* before the existing ones for *lang*."""
        self.lang_loaders[lang] = list(loaders) + self.lang_loaders.get(lang, [])
        self.loader = self._prefix_loader()

    def candidate_langs(self, lang: str | None = None) -> list[str]:
        # requested, default, English, then whatever else is registered
        order = [lang, self.default_lang, 'en', *sorted(self.lang_loaders)]
        return [option for option in dict.fromkeys(order) if option in self.lang_loaders]

    def load_template(self, name: str, lang: str | None = None,
                      globals: MutableMapping[str, Any] | None = None) -> Template:
        return self.select_template([f"{option}/{name}" for option in self.candidate_langs(lang)], globals=globals)
