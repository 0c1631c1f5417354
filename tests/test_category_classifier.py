import unittest

from techpulse.ingestion.article_types import CategorySlug, Source
from techpulse.scoring.category_classifier import is_outage_related, resolve_category
from techpulse.sources import is_aggregator_source, source_weight


GENERIC = Source(id="example", name="Example", url="https://example.com", rss_url="https://example.com/rss")
MEDIUM = Source(
    id="medium-engineering",
    name="Medium: Engineering",
    url="https://medium.com/tag/engineering",
    rss_url="https://medium.com/feed/tag/engineering",
)


class TestCategoryClassifier(unittest.TestCase):
    def test_root_cause_is_outage(self):
        title = "Root cause of the March database latency spike"
        self.assertEqual(resolve_category(GENERIC, title), CategorySlug.OUTAGES)

    def test_deterministic(self):
        args = (GENERIC, "Scaling our queue architecture", "How partitions keep throughput up", None, ("kafka",))
        self.assertEqual(resolve_category(*args), resolve_category(*args))

    def test_aggregator_sources_always_medium(self):
        self.assertTrue(is_aggregator_source(MEDIUM))
        self.assertEqual(resolve_category(MEDIUM, "Root cause of an outage"), CategorySlug.MEDIUM)

    def test_ai_keywords(self):
        self.assertEqual(resolve_category(GENERIC, "Fine-tuning LLMs for coding agents"), CategorySlug.AI_AGENTS)

    def test_security_research_is_not_outage(self):
        content = "red team notes on a prompt injection attack against our agent, root cause included"
        self.assertFalse(is_outage_related(content))

    def test_word_boundaries(self):
        # "ai" must not match inside "maintaining"
        title = "Maintaining the Postgres replication pipeline"
        self.assertEqual(resolve_category(GENERIC, title), CategorySlug.ARCHITECTURE)

    def test_source_fallback(self):
        openai = Source(id="openai", name="OpenAI", url="https://openai.com/blog", rss_url="https://openai.com/blog/rss.xml")
        self.assertEqual(resolve_category(openai, "Our team update"), CategorySlug.AI_AGENTS)
        self.assertEqual(resolve_category(GENERIC, "Our team update"), CategorySlug.ARCHITECTURE)

    def test_source_weights(self):
        self.assertEqual(source_weight("OpenAI"), 22.0)
        self.assertEqual(source_weight("Unknown Blog"), 10.0)
        self.assertEqual(source_weight(None), 10.0)


if __name__ == "__main__":
    unittest.main()
