"""
inventory_client.py

A tiny client for the shelf inventory API, usable as a module or from the
command line:

    python inventory_client.py photo.jpg --url http://localhost:8080

Environment variables:
- INVENTORY_API_URL: base URL of the service (default "http://localhost:8080")

Dependencies:
- requests (pip install requests)
"""

from __future__ import annotations

import argparse
import json
import mimetypes
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests


class ApiError(RuntimeError):
    pass


@dataclass
class InventoryApiClient:
    base_url: str
    timeout: float = 120

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def health(self) -> Dict[str, Any]:
        resp = requests.get(self._url("/health"), headers={"Accept": "application/json"}, timeout=10)
        if resp.status_code >= 400:
            raise ApiError(f"GET /health failed ({resp.status_code}): {resp.text}")
        return resp.json()

    def analyze(self, image_path: str, content_type: Optional[str] = None) -> Dict[str, Any]:
        """
        Calls: POST /analyze (multipart, field "file")

        Returns the JSON body. A 200 may still carry {"error", "raw"} when the
        model answer could not be read; use `is_unparsable` to check.
        """
        content_type = content_type or mimetypes.guess_type(image_path)[0] or "image/jpeg"
        with open(image_path, "rb") as f:
            resp = requests.post(
                self._url("/analyze"),
                files={"file": (os.path.basename(image_path), f, content_type)},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )

        if resp.status_code >= 400:
            try:
                message = resp.json().get("error", resp.text)
            except ValueError:
                message = resp.text
            raise ApiError(f"POST /analyze failed ({resp.status_code}): {message}")
        return resp.json()

    @staticmethod
    def is_unparsable(body: Dict[str, Any]) -> bool:
        return bool(body.get("error"))


def format_inventory(items: List[Dict[str, Any]]) -> str:
    lines = []
    for item in items:
        brand = f" [{item['brand']}]" if item.get("brand") else ""
        position = f" @ {item['position']}" if item.get("position") else ""
        lines.append(
            f"- {item['label']}{brand}: ~{item.get('estimated_quantity', 0)}"
            f"{position} (confidence {item.get('confidence', 0):.2f})"
        )
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Send a shelf photo to the inventory API")
    parser.add_argument("image", help="Path to the image file")
    parser.add_argument("--url", default=os.getenv("INVENTORY_API_URL", "http://localhost:8080"))
    parser.add_argument("--json", action="store_true", help="Print the raw JSON body")
    args = parser.parse_args(argv)

    client = InventoryApiClient(base_url=args.url)
    try:
        body = client.analyze(args.image)
    except (ApiError, requests.RequestException, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(body, ensure_ascii=False, indent=2))
    elif client.is_unparsable(body):
        print(f"Model answer could not be read ({body['error']}):\n{body.get('raw', '')}")
    else:
        print(format_inventory(body.get("inventory", [])))
        if body.get("csv_path"):
            print(f"CSV: {body['csv_path']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
