#!/usr/bin/env python3
"""
HTTP facade over ``POST /api/ai``.

Used by scripts and other services that talk to a running LaunchPad API
instead of importing the gateway directly. Like the gateway, it never raises
on provider trouble: ``generate_response`` returns an apology payload with
``ok=False``.

    python -m launchpad.api.ai.client --base-url http://localhost:8000 quick-test
"""

import argparse
import logging
import sys
import time
from typing import Any, Dict, List, Optional

import requests

from launchpad.api.ai.gateway import PROVIDERS, apology
from launchpad.config import get_settings

logger = logging.getLogger(__name__)

MODEL_CONFIG = {
    "openai": {"model": "gpt-4", "description": "Strategic business advice and complex reasoning"},
    "groq": {"model": "mixtral-8x7b-32768", "description": "Ultra-fast responses for real-time chat"},
    "gemini": {"model": "gemini-pro", "description": "Market research and comprehensive analysis"},
}


class AIClientError(Exception):
    pass


class AIClient:
    def __init__(self, base_url: Optional[str] = None, session=None, timeout: float = 60):
        self.base_url = (base_url or get_settings().ai_gateway_url).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.post(
            f"{self.base_url}/api/ai",
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            try:
                detail = response.json().get("error")
            except ValueError:
                detail = None
            raise AIClientError(detail or f"API error: {response.status_code}")
        return response.json()

    def generate_response(
        self,
        prompt: str,
        context: Optional[Dict[str, Any]] = None,
        provider: str = "openai",
    ) -> Dict[str, Any]:
        logger.info("Calling AI API with provider: %s", provider)
        try:
            result = self._post(
                {
                    "action": "generate",
                    "prompt": prompt,
                    "context": context or {"userType": "founder"},
                    "provider": provider,
                }
            )
        except (requests.exceptions.RequestException, AIClientError, ValueError) as exc:
            logger.error("Error with %s: %s", provider, exc)
            return {
                "content": apology(provider, str(exc)),
                "provider": provider,
                "model": "unknown",
                "tokens": 0,
                "ok": False,
                "error": str(exc),
            }
        logger.info("%s response received: %s", provider, (result.get("content") or "")[:100])
        return result

    def test_connection(self, provider: str) -> bool:
        try:
            result = self._post({"action": "test", "provider": provider})
        except (requests.exceptions.RequestException, AIClientError, ValueError) as exc:
            logger.error("%s connection test failed: %s", provider, exc)
            return False
        return bool(result.get("success"))

    def list_groq_models(self) -> List[str]:
        try:
            result = self._post({"action": "listModels", "provider": "groq"})
        except (requests.exceptions.RequestException, AIClientError, ValueError) as exc:
            logger.error("Error fetching Groq models: %s", exc)
            return []
        return result.get("models") or []

    def test_all_providers(self) -> Dict[str, bool]:
        return {provider: self.test_connection(provider) for provider in PROVIDERS}

    def quick_test(self) -> Dict[str, Dict[str, Any]]:
        """Time one short generation per provider."""
        report = {}
        for provider in PROVIDERS:
            start = time.monotonic()
            response = self.generate_response("Say hello and tell me your model name.", None, provider)
            report[provider] = {
                "ok": response.get("ok", True),
                "elapsed_ms": int((time.monotonic() - start) * 1000),
                "model": response.get("model"),
                "tokens": response.get("tokens"),
                "preview": (response.get("content") or "")[:100],
            }
        return report

    @staticmethod
    def get_model_config() -> Dict[str, Dict[str, str]]:
        return {name: dict(cfg) for name, cfg in MODEL_CONFIG.items()}


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Exercise the LaunchPad AI endpoint")
    parser.add_argument("--base-url", default=None)
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("quick-test")
    sub.add_parser("test-all")
    sub.add_parser("models")
    ask = sub.add_parser("ask")
    ask.add_argument("prompt")
    ask.add_argument("--provider", default="openai", choices=PROVIDERS)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    client = AIClient(args.base_url)

    if args.command == "quick-test":
        for provider, row in client.quick_test().items():
            mark = "✅" if row["ok"] else "❌"
            print(f"{mark} {provider}: {row['elapsed_ms']}ms model={row['model']} tokens={row['tokens']}")
            print(f"   {row['preview']}")
        return 0
    if args.command == "test-all":
        results = client.test_all_providers()
        for provider, ok in results.items():
            print(f"{'✅' if ok else '❌'} {provider}")
        return 0 if all(results.values()) else 1
    if args.command == "models":
        for model in client.list_groq_models():
            print(model)
        return 0

    response = client.generate_response(args.prompt, None, args.provider)
    print(response["content"])
    return 0 if response.get("ok", True) else 1


if __name__ == "__main__":
    sys.exit(main())
