import logging
from typing import List

logger = logging.getLogger(__name__)


class URLParser:
    def parse_list(self, raw_value: str | None) -> List[str]:
        if not raw_value:
            return []
        return [v.strip() for v in raw_value.split(",") if v.strip()]

    def parse_url_list(self, raw_value: str, name: str) -> List[str]:
        items = self.parse_list(raw_value)

        valid_items = [
            v for v in items if v.startswith("http://") or v.startswith("https://")
        ]

        if not valid_items:
            logger.warning(f"No valid URLs found in {name}")

        return valid_items

    def parse_path_list(self, raw_value: str, name: str) -> List[str]:
        items = self.parse_list(raw_value)
        invalid = [v for v in items if not v.startswith("/")]
        if invalid:
            logger.warning(f"Ignoring entries in {name} without a leading slash: {invalid}")
        return [v.rstrip("/") or "/" for v in items if v.startswith("/")]


parser = URLParser()
