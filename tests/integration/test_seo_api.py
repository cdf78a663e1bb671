"""
Tests d'intégration - sitemap.xml, robots.txt, métadonnées SEO
"""


def test_sitemap(client):
    response = client.get("/sitemap.xml")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert "<loc>https://research.topledger.xyz/dex/volume</loc>" in response.text


def test_robots(client):
    response = client.get("/robots.txt")
    assert response.headers["content-type"].startswith("text/plain")
    assert "Sitemap: https://research.topledger.xyz/sitemap.xml" in response.text


def test_chart_seo(client):
    body = client.get("/api/seo/chart", params={"title": "DEX Volume", "page": "dex/volume"}).json()
    assert body["data"]["og_title"] == "DEX Volume - State of Solana"
    assert body["data"]["page"] == "dex/volume"


def test_chart_seo_requires_title(client):
    assert client.get("/api/seo/chart").status_code == 422
