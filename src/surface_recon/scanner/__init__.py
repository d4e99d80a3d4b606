"""Outbound reconnaissance: SSRF guard, subdomain enumeration, crawling."""
