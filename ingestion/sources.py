# /ingestion/sources.py

import re
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import List, Optional
from urllib.parse import urldefrag, urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from core.config import settings
from core.graph_builder import derive_entity_relations
from core.logger import get_logger
from core.models import PageMetadata, ProductInfo, RecipeInfo, ScrapedPage

logger = get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; SmartieBot/1.0; +https://www.madewithnestle.ca/)"
CONTENT_SELECTOR = "p, h1, h2, h3, h4, h5, h6, li, article, section, .content, .main-content"
CATEGORY_SELECTOR = ".category, .categories, .breadcrumbs a, .tags a"
NUTRIENT_PATTERN = re.compile(r"([^:]+):\s*(.+)")


class DataSource(ABC):
    """Abstract base class for a source of scraped pages."""
    @abstractmethod
    def load_pages(self) -> List[ScrapedPage]:
        """Loads pages from the source and returns them as a list."""
        pass


def _select_text(soup: BeautifulSoup, selector: str) -> str:
    return " ".join(el.get_text(" ", strip=True) for el in soup.select(selector)).strip()


def _meta_content(soup: BeautifulSoup, selector: str) -> str:
    tag = soup.select_one(selector)
    return tag.get("content", "").strip() if tag else ""


def is_allowed_url(url: str, allowed_domain: str) -> bool:
    """True for http(s) urls whose host is allowed_domain or one of its subdomains."""
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    domain = allowed_domain.lower()
    return parsed.scheme in ("http", "https") and (host == domain or host.endswith("." + domain))


def parse_page(url: str, html: str, allowed_domain: str = settings.SCRAPE_ALLOWED_DOMAIN) -> ScrapedPage:
    """
    Extracts text, links, images, tables, product and recipe details from one
    HTML page. Only links inside allowed_domain are kept.
    """
    soup = BeautifulSoup(html, "html.parser")

    title = ""
    if soup.title:
        title = soup.title.get_text(strip=True)
    if not title:
        h1 = soup.find("h1")
        title = h1.get_text(strip=True) if h1 else ""
    title = title or "Untitled Page"

    description = _meta_content(soup, 'meta[name="description"]') or _meta_content(soup, 'meta[property="og:description"]')

    categories: List[str] = []
    for el in soup.select(CATEGORY_SELECTOR):
        category = el.get_text(strip=True)
        if category and category not in categories:
            categories.append(category)

    content_parts = [el.get_text(" ", strip=True) for el in soup.select(CONTENT_SELECTOR)]
    content = "".join(f"{text}\n\n" for text in content_parts if text)

    links: List[str] = []
    for anchor in soup.select("a[href]"):
        href = anchor["href"].strip()
        if not href or href.startswith("#") or href.startswith("javascript:"):
            continue
        absolute_url = urldefrag(urljoin(url, href))[0]
        if is_allowed_url(absolute_url, allowed_domain) and absolute_url not in links:
            links.append(absolute_url)

    images: List[str] = []
    for img in soup.select("img[src]"):
        images.append(urljoin(url, img["src"]))
        alt = img.get("alt", "").strip()
        if alt:
            content += f"[Image: {alt}]\n"

    tables: List[List[List[str]]] = []
    for table in soup.select("table"):
        rows = []
        for row in table.select("tr"):
            cells = [cell.get_text(strip=True) for cell in row.select("th, td")]
            if cells:
                rows.append(cells)
        if rows:
            tables.append(rows)
            content += "Table content:\n" + "".join(" | ".join(cells) + "\n" for cells in rows) + "\n"

    ingredients = [el.get_text(strip=True) for el in soup.select(".ingredients li, .ingredients-list li")]
    ingredients = [ingredient for ingredient in ingredients if ingredient]
    if not ingredients:
        ingredients_text = _select_text(soup, ".ingredients, .ingredients-list")
        ingredients = [part.strip() for part in ingredients_text.split(",") if part.strip()]

    product_info = ProductInfo(
        name=_select_text(soup, ".product-name, .product-title") or None,
        brand=_select_text(soup, ".brand-name, .brand") or None,
        ingredients=ingredients,
    )

    nutrients = {}
    for el in soup.select(".nutrition-fact, .nutrition-facts li, .nutritional-info li"):
        match = NUTRIENT_PATTERN.match(el.get_text(" ", strip=True))
        if match:
            nutrients[match.group(1).strip()] = match.group(2).strip()

    recipe_info = RecipeInfo(
        prep_time=_select_text(soup, ".prep-time, .preparation-time") or None,
        cook_time=_select_text(soup, ".cook-time, .cooking-time") or None,
        servings=_select_text(soup, ".servings, .yield") or None,
        difficulty=_select_text(soup, ".difficulty") or None,
        nutrients=nutrients,
    )

    has_product = bool(product_info.name or product_info.brand or product_info.ingredients)
    has_recipe = bool(recipe_info.prep_time or recipe_info.cook_time or recipe_info.servings
                      or recipe_info.difficulty or recipe_info.nutrients)

    return ScrapedPage(
        url=url,
        title=title,
        content=content,
        links=links,
        images=images,
        tables=tables,
        metadata=PageMetadata(
            category=categories[0] if categories else None,
            tags=categories,
            date_published=_meta_content(soup, "meta[property='article:published_time']") or None,
            description=description or None,
            product_info=product_info if has_product else None,
            recipe_info=recipe_info if has_recipe else None,
        ),
    )


class SiteScraper(DataSource):
    """
    Breadth-first crawler for a single site. Follows links inside the allowed
    domain, stops after max_pages and waits between fetches.
    """
    def __init__(self, start_url: Optional[str] = None, config=settings, session: Optional[requests.Session] = None):
        self.config = config
        self.start_url = start_url or config.SCRAPE_START_URL
        self.allowed_domain = config.SCRAPE_ALLOWED_DOMAIN
        self.max_pages = config.SCRAPE_MAX_PAGES
        self.delay = config.SCRAPE_DELAY_SECONDS
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def fetch_page(self, url: str) -> ScrapedPage:
        response = self.session.get(url, timeout=self.config.SCRAPE_TIMEOUT)
        response.raise_for_status()
        return parse_page(url, response.text, self.allowed_domain)

    def load_pages(self) -> List[ScrapedPage]:
        start_url = self.start_url
        if not is_allowed_url(start_url, self.allowed_domain):
            logger.warning(f"{start_url} is outside {self.allowed_domain}, starting from {self.config.SCRAPE_START_URL}")
            start_url = self.config.SCRAPE_START_URL

        logger.info(f"Starting scraping from: {start_url}")
        visited = set()
        queued = {start_url}
        queue = deque([start_url])
        results: List[ScrapedPage] = []

        while queue and len(results) < self.max_pages:
            url = queue.popleft()
            if url in visited:
                continue
            visited.add(url)

            try:
                logger.info(f"Scraping: {url}")
                page = self.fetch_page(url)
            except requests.RequestException as e:
                logger.error(f"Error scraping {url}: {e}")
                continue

            results.append(page)
            for link in page.links:
                if link not in visited and link not in queued:
                    queued.add(link)
                    queue.append(link)

            if queue and self.delay:
                time.sleep(self.delay)

        logger.info(f"Scraped {len(results)} pages from {self.allowed_domain}")
        return derive_entity_relations(results)
