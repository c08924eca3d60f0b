#!/usr/bin/env python3
"""
Tests for link extraction and labelling
"""

import unittest
import os
import sys

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from links import classify_link, extract_links, is_noise_url, merge_links
from models import ExtractedLink


class TestClassifyLink(unittest.TestCase):
    """Test link labels"""

    def test_known_services(self):
        cases = {
            "https://codecov.io/gh/acme/widgets/commit/abc": "Coverage report",
            "https://sonarcloud.io/dashboard?id=acme": "Code quality",
            "https://github.com/acme/widgets/releases/tag/v1.0": "GitHub release",
            "https://github.com/acme/widgets/actions/runs/1/artifacts/99": "Workflow artifact",
            "https://acme.jfrog.io/artifactory/libs/": "Artifact repository",
            "https://my-bucket.s3.amazonaws.com/build.zip": "Cloud storage",
            "https://ghcr.io/acme/widgets": "Container registry",
            "https://registry.npmjs.org/left-pad": "Package registry",
            "https://ci.example.com/reports/junit.html": "Test report",
        }
        for url, label in cases.items():
            self.assertEqual(classify_link(url), label, url)

    def test_hostname_fallback(self):
        self.assertEqual(classify_link("https://www.example.org/docs"), "example.org")

    def test_latest_is_not_a_test_report(self):
        self.assertEqual(classify_link("https://example.com/latest/notes"), "example.com")


class TestNoiseFilter(unittest.TestCase):
    """Test which URLs are dropped"""

    def test_github_ui_and_api_are_noise(self):
        self.assertTrue(is_noise_url("https://github.com/acme/widgets/actions/runs/1"))
        self.assertTrue(is_noise_url("https://api.github.com/repos/acme/widgets"))
        self.assertTrue(is_noise_url("https://pipelines.actions.githubusercontent.com/abc"))

    def test_github_downloads_kept(self):
        self.assertFalse(is_noise_url("https://github.com/acme/widgets/releases/download/v1/app.zip"))
        self.assertFalse(is_noise_url("https://github.com/acme/widgets/actions/runs/1/artifacts/99"))

    def test_length_limits(self):
        self.assertTrue(is_noise_url("http://a.b"))
        self.assertTrue(is_noise_url("https://example.com/" + "x" * 500))
        self.assertFalse(is_noise_url("https://x.io/"))


class TestExtractLinks(unittest.TestCase):
    """Test URL extraction from log text"""

    def test_extracts_and_labels(self):
        text = "\n".join([
            "2024-01-01T00:00:00Z Coverage uploaded to https://codecov.io/gh/acme/widgets/commit/abc.",
            "2024-01-01T00:00:00Z Run details: https://github.com/acme/widgets/actions/runs/1",
            "##[warning]Report (see https://ci.example.com/reports/junit.html)",
            "Again https://codecov.io/gh/acme/widgets/commit/abc",
        ])
        self.assertEqual(extract_links(text), [
            ExtractedLink("https://codecov.io/gh/acme/widgets/commit/abc", "Coverage report"),
            ExtractedLink("https://ci.example.com/reports/junit.html", "Test report"),
        ])

    def test_empty_text(self):
        self.assertEqual(extract_links(""), [])

    def test_capped_at_twenty(self):
        text = " ".join(f"https://example.com/page{i}" for i in range(25))
        links = extract_links(text)
        self.assertEqual(len(links), 20)
        self.assertEqual(links.total, 25)
        self.assertEqual(links[0].url, "https://example.com/page0")

    def test_merge_links_keeps_first(self):
        first = [ExtractedLink("https://example.com/a", "example.com")]
        second = [ExtractedLink("https://example.com/a", "other"), ExtractedLink("https://example.com/b", "example.com")]
        merged = merge_links(first, second)
        self.assertEqual([link.url for link in merged], ["https://example.com/a", "https://example.com/b"])
        self.assertEqual(merged[0].label, "example.com")


if __name__ == "__main__":
    unittest.main()
