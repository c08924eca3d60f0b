#!/usr/bin/env python3
"""
URL extraction and labelling for job logs
"""

import re
from typing import List
from urllib.parse import urlparse

from constants import MAX_LINKS
from models import CappedList, ExtractedLink

URL_RE = re.compile(r"https?://[^\s)\]>\"']+")
TRAILING_PUNCTUATION_RE = re.compile(r"[.,;:!?]+$")

MIN_URL_LENGTH = 10
MAX_URL_LENGTH = 500

# GitHub's own UI/API/runner endpoints show up in every log
NOISE_HOSTS = (
    "github.com",
    "www.github.com",
    "api.github.com",
    "codeload.github.com",
    "pipelines.actions.githubusercontent.com",
    "results-receiver.actions.githubusercontent.com",
    "vstoken.actions.githubusercontent.com",
)
# ...unless they point at something a user would download
KEPT_NOISE_PATH_RE = re.compile(r"/releases/|/artifacts(?:/|$)")

# Ordered: first matching signature labels the link
LINK_SIGNATURES = [
    ("Coverage report", re.compile(r"codecov\.io|coveralls\.io|/coverage", re.IGNORECASE)),
    ("Code quality", re.compile(r"sonarcloud\.io|sonarqube|codeclimate\.com|codacy\.com", re.IGNORECASE)),
    ("GitHub release", re.compile(r"github\.com/[^/]+/[^/]+/releases/", re.IGNORECASE)),
    ("Workflow artifact", re.compile(r"github\.com/.+/artifacts(?:/|$)", re.IGNORECASE)),
    ("Artifact repository", re.compile(r"jfrog\.io|artifactory|nexus", re.IGNORECASE)),
    ("Cloud storage", re.compile(
        r"s3[.-][^/]*amazonaws\.com|\.s3\.amazonaws\.com|storage\.googleapis\.com|blob\.core\.windows\.net",
        re.IGNORECASE,
    )),
    ("Container registry", re.compile(
        r"hub\.docker\.com|docker\.io|ghcr\.io|quay\.io|gcr\.io|\.ecr\.[^/]+\.amazonaws\.com|azurecr\.io",
        re.IGNORECASE,
    )),
    ("Package registry", re.compile(
        r"registry\.npmjs\.org|npmjs\.com|pypi\.org|files\.pythonhosted\.org|rubygems\.org|crates\.io"
        r"|repo1?\.maven\.(?:apache\.)?org|nuget\.org|proxy\.golang\.org|pkg\.go\.dev",
        re.IGNORECASE,
    )),
    ("Test report", re.compile(r"/(?:tests?|reports?)(?:[/._-]|$)", re.IGNORECASE)),
]


def _hostname(url: str) -> str:
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        host = ""
    return re.sub(r"^www\.", "", host)


def is_noise_url(url: str) -> bool:
    if not MIN_URL_LENGTH < len(url) < MAX_URL_LENGTH:
        return True
    try:
        parsed = urlparse(url)
    except ValueError:
        return True
    host = (parsed.hostname or "").lower()
    if not host:
        return True
    if host in NOISE_HOSTS or host.endswith(".actions.githubusercontent.com"):
        return KEPT_NOISE_PATH_RE.search(parsed.path) is None
    return False


def classify_link(url: str) -> str:
    for label, regex in LINK_SIGNATURES:
        if regex.search(url):
            return label
    return _hostname(url) or "Link"


def extract_links(text: str) -> CappedList:
    """Notable URLs from raw log text (annotation markers included), first-seen order"""
    links = []
    seen = set()
    for match in URL_RE.finditer(text or ""):
        url = TRAILING_PUNCTUATION_RE.sub("", match.group(0))
        if url in seen or is_noise_url(url):
            continue
        seen.add(url)
        links.append(ExtractedLink(url, classify_link(url)))
    return CappedList(links, MAX_LINKS)


def merge_links(*groups: List[ExtractedLink]) -> CappedList:
    """Combine links from several logs, keeping the first occurrence of each URL"""
    links = []
    seen = set()
    for group in groups:
        for link in group:
            if link.url not in seen:
                seen.add(link.url)
                links.append(link)
    return CappedList(links, MAX_LINKS)
