"""
HTML rewriting.

Two implementations share the same URL rules: ``PatternRewriter`` works on
the raw markup with regular expressions and is the default; ``SoupRewriter``
parses with BeautifulSoup/lxml and is slower but tolerates messier markup.
Both take a ``RewriteContext`` and return the rewritten document as text.
"""

import html
import re

from bs4 import BeautifulSoup

from .links import origin_of, resolve, without_query

# Inline script redirects to a literal absolute URL.
SCRIPT_LOCATION_RES = [
    re.compile(
        r'''(?P<lead>\b(?:(?:window|document|top|self|parent)\.)?location(?:\.href)?\s*=\s*)'''
        r'''(?P<q>["'])(?P<url>https?://[^"'\s]+)(?P=q)''',
        re.IGNORECASE,
    ),
    re.compile(
        r'''(?P<lead>\blocation\.(?:assign|replace)\(\s*)(?P<q>["'])(?P<url>https?://[^"'\s]+)(?P=q)''',
        re.IGNORECASE,
    ),
]

META_REFRESH_RE = re.compile(
    r'''^(?P<lead>\s*[\d.]*\s*[;,]\s*url\s*=\s*)(?P<q>["']?)(?P<url>.*?)(?P=q)\s*$''',
    re.IGNORECASE | re.DOTALL,
)


class RewriteContext:
    """Per-response state for a single rewrite pass."""

    def __init__(self, target, codec, inject_src, content_type='text/html'):
        self.target = target
        self.codec = codec
        self.inject_src = inject_src
        self.content_type = content_type
        self.headers = []
        # Replaced by the page's own <base href> when it declares one.
        self.base = target
        self.page_base = None

    def use_page_base(self, href):
        if href and href.strip():
            self.page_base = resolve(href, self.target)
            self.base = self.page_base

    @property
    def injected_base(self):
        return self.page_base or origin_of(self.target) + '/'


def rewrite_url(value, ctx):
    """
    Returns the ProxyLink for an href/src value, or None to leave it alone.

    Absolute http(s), protocol-relative and root-relative URLs are proxied.
    Document-relative URLs are left to the injected <base>.
    """
    if not value:
        return None
    value = value.strip()
    if ctx.codec.is_proxy_link(value):
        return None
    lowered = value.lower()
    if lowered.startswith(('http://', 'https://')):
        return ctx.codec.encode(value)
    if value.startswith('/'):
        # Covers both "//host/path" and "/path".
        return ctx.codec.encode(resolve(value, ctx.base))
    return None


def form_action_target(action, ctx):
    """Absolute URL a form submits to. Empty or missing means the current page."""
    if action is None or not action.strip():
        return ctx.target
    if ctx.codec.is_proxy_link(action.strip()):
        return ctx.codec.decode(action.strip())
    return resolve(action, ctx.base)


def is_get_form(method):
    return not method or method.strip().lower() == 'get'


def rewrite_meta_refresh(content, ctx):
    match = META_REFRESH_RE.match(content or '')
    if not match or not match.group('url'):
        return None
    url = ctx.codec.proxify(match.group('url'), ctx.base)
    return f"{match.group('lead')}{url}"


def rewrite_script(source, ctx):
    def replace(match):
        return f"{match.group('lead')}{match.group('q')}{ctx.codec.encode(match.group('url'))}{match.group('q')}"

    for pattern in SCRIPT_LOCATION_RES:
        source = pattern.sub(replace, source)
    return source


class HtmlRewriter:
    name = None

    def rewrite(self, html_text, ctx):
        raise NotImplementedError


class PatternRewriter(HtmlRewriter):
    """Best-effort rewrite of well-formed markup without parsing it."""

    name = 'pattern'

    TAG_RE = re.compile(
        r'''<(?P<name>[a-zA-Z][a-zA-Z0-9-]*)(?P<attrs>(?:[^>"']|"[^"]*"|'[^']*')*)>''',
        re.DOTALL,
    )
    ATTR_RE = re.compile(
        r'''(?P<lead>\s+)(?P<name>[^\s"'>/=]+)'''
        r'''(?:(?P<eq>\s*=\s*)(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<uq>[^\s"'>]+)))?''',
        re.DOTALL,
    )
    # Comments and raw-text elements. Markup inside them is not markup.
    RAW_TEXT_RE = re.compile(
        r'''<!--.*?-->'''
        r'''|(?P<open><(?P<raw>script|style|textarea|title)\b(?:[^>"']|"[^"]*"|'[^']*')*>)'''
        r'''(?P<body>.*?)(?P<close></(?P=raw)\s*>)''',
        re.IGNORECASE | re.DOTALL,
    )
    HEAD_RE = re.compile(r'<head\b[^>]*>', re.IGNORECASE)
    HTML_RE = re.compile(r'<html\b[^>]*>', re.IGNORECASE)
    DOCTYPE_RE = re.compile(r'^\s*<!doctype[^>]*>', re.IGNORECASE)

    @classmethod
    def parse_attrs(cls, attrs):
        """Returns ``[(lead, name, value_or_None)]`` with values unescaped."""
        parsed = []
        for match in cls.ATTR_RE.finditer(attrs):
            value = None
            if match.group('eq') is not None:
                raw = next(v for v in match.group('dq', 'sq', 'uq') if v is not None)
                value = html.unescape(raw)
            parsed.append((match.group('lead'), match.group('name'), value))
        return parsed

    @staticmethod
    def format_attrs(parsed, tail):
        out = []
        for lead, name, value in parsed:
            if value is None:
                out.append(f'{lead}{name}')
            else:
                out.append(f'{lead}{name}="{html.escape(value)}"')
        return ''.join(out) + tail

    @classmethod
    def segments(cls, html_text):
        """
        Splits a document into ``(is_markup, text)`` pieces.

        Comments and the bodies of raw-text elements come back with
        ``is_markup`` false; the opening tag of a raw-text element is markup.
        """
        pos = 0
        for match in cls.RAW_TEXT_RE.finditer(html_text):
            yield True, html_text[pos:match.start()]
            if match.group('open') is None:
                yield False, match.group(0)
            else:
                yield True, match.group('open')
                yield False, match.group('body') + match.group('close')
            pos = match.end()
        yield True, html_text[pos:]

    @classmethod
    def search_markup(cls, pattern, html_text):
        """Offset of the end of the first match of ``pattern`` outside raw text."""
        offset = 0
        for is_markup, text in cls.segments(html_text):
            if is_markup:
                match = pattern.search(text)
                if match:
                    return offset + match.end()
            offset += len(text)
        return None

    def find_page_base(self, html_text, ctx):
        for is_markup, text in self.segments(html_text):
            if not is_markup:
                continue
            for match in self.TAG_RE.finditer(text):
                if match.group('name').lower() != 'base':
                    continue
                for _, name, value in self.parse_attrs(match.group('attrs')):
                    if name.lower() == 'href' and value:
                        ctx.use_page_base(value)
                        return

    def rewrite_tag(self, match, ctx):
        name = match.group('name').lower()
        if name == 'base':
            return match.group(0)
        attrs_text = match.group('attrs')
        # Keep a self-closing slash in place.
        tail = ''
        stripped = attrs_text.rstrip()
        if stripped.endswith('/') and (len(stripped) == 1 or stripped[-2] in ' \t\r\n"\''):
            tail = attrs_text[len(stripped) - 1:]
            attrs_text = stripped[:-1]

        parsed = self.parse_attrs(attrs_text)
        changed = False
        extra = ''

        if name == 'form':
            action_index = None
            method = None
            for i, (_, attr, value) in enumerate(parsed):
                if attr.lower() == 'action':
                    action_index = i
                elif attr.lower() == 'method':
                    method = value
            existing = parsed[action_index][2] if action_index is not None else None
            absolute = form_action_target(existing, ctx)
            proxied = ctx.codec.encode(absolute)
            if action_index is None:
                parsed.append((' ', 'action', proxied))
            else:
                lead, attr, _ = parsed[action_index]
                parsed[action_index] = (lead, attr, proxied)
            changed = True
            if is_get_form(method):
                extra = f'<input type="hidden" name="url" value="{html.escape(without_query(absolute))}" data-roogle-url>'
        elif name == 'meta':
            is_refresh = any(
                attr.lower() == 'http-equiv' and (value or '').strip().lower() == 'refresh'
                for _, attr, value in parsed
            )
            if is_refresh:
                for i, (lead, attr, value) in enumerate(parsed):
                    if attr.lower() == 'content':
                        new = rewrite_meta_refresh(value, ctx)
                        if new is not None:
                            parsed[i] = (lead, attr, new)
                            changed = True

        for i, (lead, attr, value) in enumerate(parsed):
            if attr.lower() in ('href', 'src'):
                new = rewrite_url(value, ctx)
                if new is not None:
                    parsed[i] = (lead, attr, new)
                    changed = True

        if not changed:
            return match.group(0)
        return f'<{match.group("name")}{self.format_attrs(parsed, tail)}>{extra}'

    def inject(self, html_text, ctx):
        injected = (
            f'<base href="{html.escape(ctx.injected_base)}">'
            f'<script src="{html.escape(ctx.inject_src)}"></script>'
        )
        at = self.search_markup(self.HEAD_RE, html_text)
        if at is not None:
            return html_text[:at] + injected + html_text[at:]
        at = self.search_markup(self.HTML_RE, html_text)
        if at is not None:
            return html_text[:at] + f'<head>{injected}</head>' + html_text[at:]
        doctype = self.DOCTYPE_RE.search(html_text)
        at = doctype.end() if doctype else 0
        return html_text[:at] + f'<head>{injected}</head>' + html_text[at:]

    def rewrite(self, html_text, ctx):
        self.find_page_base(html_text, ctx)
        out = []
        pos = 0
        for match in self.RAW_TEXT_RE.finditer(html_text):
            out.append(self.rewrite_markup(html_text[pos:match.start()], ctx))
            if match.group('open') is None:
                out.append(match.group(0))
            else:
                body = match.group('body')
                if match.group('raw').lower() == 'script':
                    body = rewrite_script(body, ctx)
                out.append(self.rewrite_markup(match.group('open'), ctx))
                out.append(body + match.group('close'))
            pos = match.end()
        out.append(self.rewrite_markup(html_text[pos:], ctx))
        # Injected last so the gateway's own script URL is never proxied.
        return self.inject(''.join(out), ctx)

    def rewrite_markup(self, text, ctx):
        return self.TAG_RE.sub(lambda m: self.rewrite_tag(m, ctx), text)


class SoupRewriter(HtmlRewriter):
    """Parses the document with BeautifulSoup and lxml."""

    name = 'soup'

    def rewrite(self, html_text, ctx):
        soup = BeautifulSoup(html_text, 'lxml')

        page_base = soup.find('base', href=True)
        if page_base is not None:
            ctx.use_page_base(page_base['href'])

        for tag in soup.find_all(True):
            if tag.name == 'base':
                continue
            if tag.name == 'form':
                absolute = form_action_target(tag.get('action'), ctx)
                tag['action'] = ctx.codec.encode(absolute)
                if is_get_form(tag.get('method')):
                    hidden = soup.new_tag('input', attrs={
                        'type': 'hidden',
                        'name': 'url',
                        'value': without_query(absolute),
                        'data-roogle-url': '',
                    })
                    tag.insert(0, hidden)
            elif tag.name == 'meta' and tag.get('http-equiv', '').strip().lower() == 'refresh':
                new = rewrite_meta_refresh(tag.get('content'), ctx)
                if new is not None:
                    tag['content'] = new

            for attr in ('href', 'src'):
                if tag.has_attr(attr):
                    new = rewrite_url(tag[attr], ctx)
                    if new is not None:
                        tag[attr] = new

        for script in soup.find_all('script'):
            if script.string:
                script.string = rewrite_script(script.string, ctx)

        head = soup.head
        if head is None:
            head = soup.new_tag('head')
            if soup.html is not None:
                soup.html.insert(0, head)
            else:
                soup.insert(0, head)
        head.insert(0, soup.new_tag('base', href=ctx.injected_base))
        head.insert(1, soup.new_tag('script', src=ctx.inject_src))
        return str(soup)


REWRITERS = {cls.name: cls for cls in (PatternRewriter, SoupRewriter)}


def get_rewriter(name):
    try:
        return REWRITERS[name]()
    except KeyError:
        raise ValueError(f"Unknown rewriter: {name!r}") from None
