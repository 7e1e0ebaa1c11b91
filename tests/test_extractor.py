from page_mirror.capture.extractor import AssetExtractor, parse_html
from page_mirror.capture.models import (
    AssetKind,
    CssTextSpanLocation,
    DomAttributeLocation,
    distinct_urls,
)


BASE = "https://example.com/site/index.html"

PAGE = """
<html>
<head>
  <link rel="stylesheet" href="/css/main.css">
  <link rel="preload stylesheet" href="theme.css">
  <link rel="icon" href="/favicon.ico">
  <script src="/js/app.js"></script>
  <script>window.inline = true;</script>
</head>
<body>
  <div class="hero" style="color: red; background: url('/img/bg.jpg') no-repeat; background-image: url(/img/second.jpg)"></div>
  <div style="background-image: url(data:image/png;base64,AAAA)"></div>
  <img src="photos/a.png" alt="a">
  <img data-src="/lazy/b.png">
  <img src="" data-lazy="/lazy/c.png">
  <img data-original="//cdn.example.com/d.png">
  <img src="data:image/gif;base64,R0lGOD" data-src="/lazy/never.png">
  <img alt="no source">
  <img src="javascript:void(0)">
</body>
</html>
"""


def extract(html=PAGE, base=BASE):
    soup = parse_html(html)
    assets = AssetExtractor().extract(soup, base)
    return soup, assets


def test_stylesheets_collected_in_order_and_replaced_by_one_link():
    soup, assets = extract()

    assert [r.resolved_url for r in assets.stylesheets] == [
        "https://example.com/css/main.css",
        "https://example.com/site/theme.css",
    ]
    assert all(r.kind is AssetKind.STYLESHEET for r in assets.stylesheets)

    stylesheet_links = [
        link for link in soup.find_all('link')
        if 'stylesheet' in link.get('rel', [])
    ]
    assert len(stylesheet_links) == 1
    assert stylesheet_links[0]['href'] == 'style.css'
    assert stylesheet_links[0].parent.name == 'head'

    # Non-stylesheet links are untouched
    assert soup.find('link', rel='icon')['href'] == '/favicon.ico'


def test_external_scripts_removed_inline_scripts_kept():
    soup, assets = extract()

    assert [r.resolved_url for r in assets.scripts] == ["https://example.com/js/app.js"]

    scripts = soup.find_all('script')
    assert len(scripts) == 1
    assert 'window.inline' in scripts[0].string


def test_inline_style_takes_first_background_url_only():
    _, assets = extract()

    assert len(assets.inline_styles) == 1
    ref = assets.inline_styles[0]
    assert ref.kind is AssetKind.INLINE_STYLE_BACKGROUND_IMAGE
    assert ref.raw_value == "/img/bg.jpg"
    assert ref.resolved_url == "https://example.com/img/bg.jpg"

    location = ref.location
    assert isinstance(location, DomAttributeLocation)
    assert location.attribute == 'style'
    start, end = location.span
    assert location.element['style'][start:end] == "/img/bg.jpg"


def test_image_source_priority_and_skips():
    _, assets = extract()

    found = [(r.location.attribute, r.resolved_url) for r in assets.images]
    assert found == [
        ("src", "https://example.com/site/photos/a.png"),
        ("data-src", "https://example.com/lazy/b.png"),
        ("data-lazy", "https://example.com/lazy/c.png"),
        ("data-original", "https://cdn.example.com/d.png"),
    ]
    # javascript: source is dropped as invalid
    assert assets.dropped == 1


def test_embedded_sources_never_reach_references():
    _, assets = extract()

    for ref in assets.all_references():
        assert ref.resolved_url is not None
        assert not ref.raw_value.lower().startswith('data:')


def test_base_element_changes_resolution_base():
    html = """
    <html><head><base href="https://static.example.org/assets/"></head>
    <body><img src="pic.png"></body></html>
    """
    _, assets = extract(html)
    assert assets.images[0].resolved_url == "https://static.example.org/assets/pic.png"


def test_head_created_when_missing():
    soup, _ = extract("<p>No head here</p>")
    assert soup.head is not None
    assert soup.head.find('link')['href'] == 'style.css'


def test_distinct_urls_keeps_first_seen_order():
    html = """
    <body>
      <img src="/a.png"><img data-src="/a.png"><img src="/b.png">
      <div style="background:url(/a.png)"></div>
    </body>
    """
    _, assets = extract(html)
    assert distinct_urls(assets.image_references()) == [
        "https://example.com/a.png",
        "https://example.com/b.png",
    ]


def test_extract_css_spans_and_per_stylesheet_base():
    first = ".a { background: url(img/one.png); }"
    second = '.b { background: url("../two.png") } .c { background: url(data:image/png;base64,AA) }'
    css = first + "\n" + second
    segments = [
        (0, "https://example.com/css/main.css"),
        (len(first) + 1, "https://cdn.example.com/themes/dark/theme.css"),
    ]

    refs = AssetExtractor().extract_css(css, segments)

    assert [r.resolved_url for r in refs] == [
        "https://example.com/css/img/one.png",
        "https://cdn.example.com/themes/two.png",
    ]
    for ref in refs:
        assert ref.kind is AssetKind.CSS_BACKGROUND_IMAGE
        assert isinstance(ref.location, CssTextSpanLocation)
        assert css[ref.location.start:ref.location.end] == ref.raw_value


def test_extract_css_drops_fragment_references():
    css = "filter: url(#blur); mask: url('mask.svg');"
    refs = AssetExtractor().extract_css(css, [(0, BASE)])
    assert [r.raw_value for r in refs] == ["mask.svg"]


def test_extract_css_without_segments_returns_nothing():
    assert AssetExtractor().extract_css("", []) == []


SVG_DATA = "data:image/svg+xml,%3Csvg%3E%3Crect fill='url(%23g)'/%3E%3C/svg%3E"


def test_extract_css_skips_urls_nested_in_embedded_values():
    css = f'.x{{background:url("{SVG_DATA}")}} .y{{background:url(real.png)}}'
    refs = AssetExtractor().extract_css(css, [(0, BASE)])
    assert [r.raw_value for r in refs] == ["real.png"]
    ref = refs[0]
    assert css[ref.location.start:ref.location.end] == "real.png"


def test_extract_css_balances_parentheses_in_unquoted_values():
    svg = "data:image/svg+xml,%3Crect%20fill=%22url(%23g)%22/%3E"
    css = f".x {{ mask: url({svg}); background: url( real.png ) }}"
    refs = AssetExtractor().extract_css(css, [(0, BASE)])
    assert [r.raw_value for r in refs] == ["real.png"]


def test_inline_style_with_embedded_svg_has_no_reference():
    html = f'<div style="background: url(&quot;{SVG_DATA}&quot;)"></div>'
    _, assets = extract(html)
    assert assets.inline_styles == []
    assert assets.dropped == 0


def test_inline_style_background_after_other_url_declaration():
    html = '<div style="mask: url(\'a.svg;v=1\'); background: url(b.png) no-repeat"></div>'
    _, assets = extract(html)

    assert [r.raw_value for r in assets.inline_styles] == ["b.png"]
    location = assets.inline_styles[0].location
    start, end = location.span
    assert location.element['style'][start:end] == "b.png"


def test_srcset_candidates_made_absolute():
    html = """
    <picture><source srcset="wide.webp 1200w"><img src="a.png" srcset="a.png 1x, /b.png 2x"></picture>
    """
    soup, assets = extract(html)

    assert soup.img['srcset'] == "https://example.com/site/a.png 1x, https://example.com/b.png 2x"
    assert soup.source['srcset'] == "https://example.com/site/wide.webp 1200w"
    # srcset candidates are not downloaded
    assert [r.raw_value for r in assets.images] == ["a.png"]
