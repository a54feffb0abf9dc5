"""Shodan host and DNS information. Requires an API key."""

from __future__ import annotations

import ipaddress
import re

import httpx

from ...models import KnowledgeEntry, LookupOptions, LookupResult
from ..base import error_result
from ._http import HttpKnowledgeProvider, ProviderRequestError

SHODAN_API = "https://api.shodan.io"

_DOMAIN = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?:\.[a-z0-9-]{1,63})+$", re.IGNORECASE)


class ShodanProvider(HttpKnowledgeProvider):
    name = "shodan"
    display_name = "Shodan"

    def __init__(self, api_key: str | None = None, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(client)
        self._api_key = api_key or ""

    def configure(self, api_key: str | None) -> None:
        self._api_key = api_key or ""

    async def is_available(self) -> bool:
        return bool(self._api_key)

    async def lookup(self, query: str, options: LookupOptions | None = None) -> LookupResult:
        if not self._api_key:
            return error_result(self.name, "Shodan API key not configured")
        return await super().lookup(query, options)

    async def _search(self, query: str, options: LookupOptions) -> list[KnowledgeEntry]:
        query = query.strip()

        if _is_ip(query):
            entry = await self._host(query)
            return [entry] if entry else []

        if _DOMAIN.match(query):
            return (await self._dns(query))[: options.max_results]

        data = await self._get_json(
            f"{SHODAN_API}/shodan/host/search",
            params={"key": self._api_key, "query": query},
        )
        return [self._match_entry(match) for match in data.get("matches", [])[: options.max_results]]

    async def _host(self, ip: str) -> KnowledgeEntry | None:
        response = await self._get(f"{SHODAN_API}/shodan/host/{ip}", params={"key": self._api_key})
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise ProviderRequestError(f"Host lookup failed: {response.status_code}")

        host = response.json()
        ports = host.get("ports") or []
        lines = [f"Organization: {host.get('org') or 'unknown'}"]
        if host.get("country_name"):
            lines.append(f"Country: {host['country_name']}")
        if ports:
            lines.append(f"Open ports: {', '.join(str(p) for p in ports)}")

        return KnowledgeEntry(
            title=host.get("ip_str", ip),
            summary="\n".join(lines),
            url=f"https://www.shodan.io/host/{ip}",
            source=self.name,
            metadata={
                "ip": host.get("ip_str", ip),
                "hostnames": host.get("hostnames") or [],
                "org": host.get("org"),
                "country": host.get("country_name"),
                "ports": ports,
                "os": host.get("os"),
                "vulns": list(host.get("vulns") or []),
            },
        )

    async def _dns(self, domain: str) -> list[KnowledgeEntry]:
        data = await self._get_json(f"{SHODAN_API}/dns/domain/{domain}", params={"key": self._api_key})
        entries = []
        for record in data.get("data", []):
            subdomain = record.get("subdomain")
            name = f"{subdomain}.{domain}" if subdomain else domain
            entries.append(
                KnowledgeEntry(
                    title=name,
                    summary=f"{record.get('type', '?')} record: {record.get('value', '')}",
                    url=f"https://www.shodan.io/domain/{domain}",
                    source=self.name,
                    metadata={"type": record.get("type"), "value": record.get("value")},
                )
            )
        return entries

    def _match_entry(self, match: dict) -> KnowledgeEntry:
        ip = match.get("ip_str", "")
        product = match.get("product")
        summary = f"Port {match.get('port')}"
        if product:
            summary += f" ({product})"
        if match.get("org"):
            summary += f" - {match['org']}"
        return KnowledgeEntry(
            title=ip,
            summary=summary,
            url=f"https://www.shodan.io/host/{ip}",
            source=self.name,
            metadata={
                "ip": ip,
                "port": match.get("port"),
                "org": match.get("org"),
                "hostnames": match.get("hostnames") or [],
                "country": match.get("country_name"),
            },
        )


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True
