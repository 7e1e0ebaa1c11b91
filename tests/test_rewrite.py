from page_mirror.capture.extractor import AssetExtractor, parse_html
from page_mirror.capture.models import AssetKind, AssetRegistry
from page_mirror.capture.rewrite import LinkRewriter


BASE = "https://example.com/"


def downloaded(registry, url, name, kind=AssetKind.IMAGE):
    record = registry.add(url, kind)
    assert registry.claim_name(name, url)
    record.local_name = name
    record.mark_downloaded()
    return record


def failed(registry, url, kind=AssetKind.IMAGE):
    record = registry.add(url, kind)
    record.mark_failed("HTTP 404")
    return record


def prepare(html):
    soup = parse_html(html)
    assets = AssetExtractor().extract(soup, BASE)
    return soup, assets


def test_image_rewritten_and_lazy_attributes_removed():
    soup, assets = prepare(
        '<img src="/a.png" data-src="/big-a.png"><img data-src="/a.png" data-lazy="x" class="lazy">'
    )
    registry = AssetRegistry()
    downloaded(registry, "https://example.com/a.png", "a.png")

    LinkRewriter().rewrite(soup, "", assets.all_references(), registry)

    first, second = soup.find_all('img')
    assert first['src'] == "images/a.png"
    assert second['src'] == "images/a.png"
    for img in (first, second):
        assert 'data-src' not in img.attrs
        assert 'data-lazy' not in img.attrs
    assert second['class'] == ['lazy']


def test_failed_image_keeps_absolute_url():
    soup, assets = prepare('<img data-src="/missing.png"><img src="gone.png">')
    registry = AssetRegistry()
    failed(registry, "https://example.com/missing.png")
    failed(registry, "https://example.com/gone.png")

    LinkRewriter().rewrite(soup, "", assets.all_references(), registry)

    first, second = soup.find_all('img')
    assert first['data-src'] == "https://example.com/missing.png"
    assert 'src' not in first.attrs
    assert second['src'] == "https://example.com/gone.png"


def test_inline_style_only_matched_span_changes():
    style = "color: red; background:url('/bg.jpg') center / cover; margin: 0"
    soup, assets = prepare(f'<div style="{style}"></div>')
    registry = AssetRegistry()
    downloaded(registry, "https://example.com/bg.jpg", "bg.jpg")

    LinkRewriter().rewrite(soup, "", assets.all_references(), registry)

    assert soup.div['style'] == "color: red; background:url('images/bg.jpg') center / cover; margin: 0"


def test_inline_style_failure_uses_absolute_url():
    soup, assets = prepare('<div style="background-image: url(img/bg.jpg)"></div>')
    registry = AssetRegistry()
    failed(registry, "https://example.com/img/bg.jpg")

    LinkRewriter().rewrite(soup, "", assets.all_references(), registry)

    assert soup.div['style'] == "background-image: url(https://example.com/img/bg.jpg)"


def test_css_rewrite_is_anchored_to_matched_spans():
    css = (
        ".a { background: url(a.png); }\n"
        ".note::after { content: 'a.png'; }\n"
        ".b { background: url('b.png'); }\n"
        ".c { background: url(a.png) }"
    )
    extractor = AssetExtractor()
    refs = extractor.extract_css(css, [(0, "https://example.com/css/site.css")])
    registry = AssetRegistry()
    downloaded(registry, "https://example.com/css/a.png", "a.png", AssetKind.CSS_BACKGROUND_IMAGE)
    failed(registry, "https://example.com/css/b.png", AssetKind.CSS_BACKGROUND_IMAGE)

    soup = parse_html("<html></html>")
    _, result = LinkRewriter().rewrite(soup, css, refs, registry)

    assert result == (
        ".a { background: url(images/a.png); }\n"
        ".note::after { content: 'a.png'; }\n"
        ".b { background: url('https://example.com/css/b.png'); }\n"
        ".c { background: url(images/a.png) }"
    )


def test_base_element_removed():
    soup, assets = prepare('<head><base href="/static/"></head><img src="a.png">')
    registry = AssetRegistry()

    html, _ = LinkRewriter().rewrite(soup, "", assets.all_references(), registry)

    assert '<base' not in html
    assert soup.img['src'] == "https://example.com/static/a.png"


def test_rewrite_map_only_contains_downloaded_records():
    registry = AssetRegistry()
    downloaded(registry, "https://example.com/a.png", "a.png")
    failed(registry, "https://example.com/b.png")
    registry.add("https://example.com/c.png", AssetKind.IMAGE)
    text = registry.add("https://example.com/site.css", AssetKind.STYLESHEET)
    text.mark_downloaded("body {}")

    assert registry.rewrite_map() == {"https://example.com/a.png": "a.png"}


def test_link_script_appends_to_body():
    soup = parse_html("<html><body><p>hi</p></body></html>")
    LinkRewriter().link_script(soup)
    assert soup.body.find_all(recursive=False)[-1].name == 'script'
    assert soup.body.script['src'] == 'script.js'


def test_css_rewrite_leaves_embedded_svg_untouched():
    svg = "url(\"data:image/svg+xml,%3Csvg%3E%3Crect fill='url(%23g)'/%3E%3C/svg%3E\")"
    css = f".x{{background:{svg}}} .y{{background:url(real.png)}}"
    refs = AssetExtractor().extract_css(css, [(0, "https://example.com/css/site.css")])
    registry = AssetRegistry()
    downloaded(registry, "https://example.com/css/real.png", "real.png", AssetKind.CSS_BACKGROUND_IMAGE)

    soup = parse_html("<html></html>")
    _, result = LinkRewriter().rewrite(soup, css, refs, registry)

    assert result == f".x{{background:{svg}}} .y{{background:url(images/real.png)}}"


def test_localized_image_drops_srcset_and_sizes():
    soup, assets = prepare(
        '<img src="/a.png" srcset="/a.png 1x, /a@2x.png 2x" sizes="100vw">'
        '<img src="/gone.png" srcset="/gone.png 1x, /gone@2x.png 2x">'
    )
    registry = AssetRegistry()
    downloaded(registry, "https://example.com/a.png", "a.png")
    failed(registry, "https://example.com/gone.png")

    LinkRewriter().rewrite(soup, "", assets.all_references(), registry)

    local, remote = soup.find_all('img')
    assert local['src'] == "images/a.png"
    assert 'srcset' not in local.attrs
    assert 'sizes' not in local.attrs
    assert remote['src'] == "https://example.com/gone.png"
    assert remote['srcset'] == "https://example.com/gone.png 1x, https://example.com/gone@2x.png 2x"
