"""Tests for the site-specific regex extractors."""

from news_signals.extractors import (
    extract_moneycontrol,
    extract_sebi,
    extract_yahoo,
    find_extractor,
)

SEBI_PAGE = """
<div class="news-list">
  <div class="date">Mar 04, 2024</div>
  <div class="title"><a href="/sebi_data/attachdocs/mar-2024/circular.pdf">Circular on margin obligations</a></div>
  <div class="desc">Circular</div>
</div>
<div class='news-list'>
  <div class='date'>Mar 01, 2024</div>
  <div class='title'>Press release without attachment</div>
  <div class='desc'>Press</div>
</div>
"""

MONEYCONTROL_PAGE = """
<ul>
  <li><a href="/news/business/markets/nifty-record.html"><h3>Nifty hits record high on FII buying</h3></a></li>
  <li><a href="https://www.moneycontrol.com/news/rupee.html"><span class="story-headline">Rupee slumps to two-week low</span></a></li>
</ul>
"""

YAHOO_PAGE = """
<ul>
  <li class="js-stream-content Pos(r) Ov(h)"><div><a href="/news/asian-shares-rise.html">Asian shares rise as yields ease</a></div></li>
</ul>
"""


def test_sebi_rows_and_pdf_links():
    items = extract_sebi("https://www.sebi.gov.in/sebiweb/home/HomeAction.do", SEBI_PAGE, 10)

    assert [i.title for i in items] == [
        "Circular on margin obligations",
        "Press release without attachment",
    ]
    assert items[0].link == "https://www.sebi.gov.in/sebi_data/attachdocs/mar-2024/circular.pdf"
    assert items[0].description == "SEBI Notification: Mar 04, 2024"
    # no pdf: the page itself
    assert items[1].link == "https://www.sebi.gov.in/sebiweb/home/HomeAction.do"
    assert items[1].source == "sebi.gov.in"


def test_moneycontrol_cards():
    items = extract_moneycontrol("https://www.moneycontrol.com/news/", MONEYCONTROL_PAGE, 10)

    assert [i.title for i in items] == [
        "Nifty hits record high on FII buying",
        "Rupee slumps to two-week low",
    ]
    assert items[0].link == "https://www.moneycontrol.com/news/business/markets/nifty-record.html"
    assert items[1].link == "https://www.moneycontrol.com/news/rupee.html"


def test_yahoo_stream_items():
    items = extract_yahoo("https://sg.finance.yahoo.com/topic/stock-market-news/", YAHOO_PAGE, 10)
    assert len(items) == 1
    assert items[0].title == "Asian shares rise as yields ease"
    assert items[0].link == "https://sg.finance.yahoo.com/news/asian-shares-rise.html"


def test_max_items_respected():
    assert len(extract_sebi("https://www.sebi.gov.in/", SEBI_PAGE, 1)) == 1


class TestFindExtractor:
    def test_known_hosts(self):
        assert find_extractor("https://www.sebi.gov.in/x").name == "sebi"
        mc = find_extractor("https://www.MoneyControl.com/news/")
        assert mc.name == "moneycontrol"
        assert mc.timeout_factor == 2.0
        assert mc.referer
        assert find_extractor("https://sg.finance.yahoo.com/").name == "yahoo"

    def test_unknown_host(self):
        assert find_extractor("https://feeds.content.dowjones.io/public/rss") is None
        assert find_extractor("") is None

    def test_falls_back_to_generic_scraper(self):
        page = "<html><body><a href='/a'>Markets close higher after volatile session</a></body></html>"
        items = find_extractor("https://www.sebi.gov.in/").parse("https://www.sebi.gov.in/", page, 5)
        assert [i.title for i in items] == ["Markets close higher after volatile session"]
