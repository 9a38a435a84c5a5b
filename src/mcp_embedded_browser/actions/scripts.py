"""
Page scripts run through ``driver.execute_script``.

Every script is a function body; parameters arrive as ``arguments[i]`` so no
value is ever spliced into source text. Scripts return plain objects that the
action layer formats into text.

The element enumeration used by look/find is stored on the page as
``window.__mcpElementIndex`` so numeric targets resolve against the most
recent inspection. A new document starts without it and is enumerated fresh.
"""

INTERACTIVE_SELECTOR = (
    'a[href],button,input,select,textarea,[role="button"],[role="link"],[role="tab"],'
    '[role="menuitem"],[onclick],[tabindex],[data-tooltip]'
)

CLICKABLE_SELECTOR = (
    'button,a,[role="button"],[role="menuitem"],[role="link"],input[type="button"],'
    'input[type="submit"],summary,[tabindex],[data-tooltip]'
)

DIALOG_SELECTOR = '[role="dialog"],[aria-modal="true"]'

_PRELUDE = """
const INTERACTIVE = %(interactive)r;
const CLICKABLE = %(clickable)r;
const DIALOGS = %(dialogs)r;
const norm = (s) => (s || '').replace(/\\s+/g, ' ').trim();
const vis = (el) => {
  if (!el || !el.getBoundingClientRect) return false;
  const r = el.getBoundingClientRect();
  if (r.width <= 0 || r.height <= 0) return false;
  const cs = getComputedStyle(el);
  return cs.display !== 'none' && cs.visibility !== 'hidden' && cs.opacity !== '0';
};
const openDialogs = () => [...document.querySelectorAll(DIALOGS)].filter(vis).reverse();
const enumerate = () => {
  const roots = [...openDialogs(), document];
  const all = [];
  const seen = new Set();
  for (const root of roots) {
    for (const el of root.querySelectorAll(INTERACTIVE)) {
      if (seen.has(el) || !vis(el)) continue;
      seen.add(el);
      all.push(el);
    }
  }
  window.__mcpElementIndex = all;
  return all;
};
const resolveIndex = (idx) => {
  const stored = window.__mcpElementIndex;
  if (stored && idx >= 1 && idx <= stored.length) {
    const el = stored[idx - 1];
    if (el && el.isConnected && vis(el)) return {el: el, count: stored.length};
  }
  const all = enumerate();
  return {el: all[idx - 1] || null, count: all.length};
};
const linkOf = (el) => {
  const a = el.href ? el : (el.closest ? el.closest('a[href]') : null);
  return ((a && a.href) || '').substring(0, 200);
};
const describe = (el) => ({
  tag: (el.tagName || '').toLowerCase(),
  text: norm(el.textContent || el.getAttribute('aria-label') || el.value || '').substring(0, 80),
  tooltip: norm(el.getAttribute('data-tooltip') || el.getAttribute('title')).substring(0, 80),
  href: linkOf(el),
  name: el.name || el.id || '',
});
""" % {
    "interactive": INTERACTIVE_SELECTOR,
    "clickable": CLICKABLE_SELECTOR,
    "dialogs": DIALOG_SELECTOR,
}


def _script(body: str) -> str:
    return _PRELUDE + body


# arguments: [dialogOnly, textPreviewChars]
COLLECT_ELEMENTS_JS = _script("""
const dialogOnly = !!arguments[0];
const previewChars = arguments[1] || 0;
const all = enumerate();
const items = [];
for (let i = 0; i < all.length; i++) {
  const el = all[i];
  const inDialog = !!(el.closest && el.closest(DIALOGS));
  if (dialogOnly && !inDialog) continue;
  const tag = (el.tagName || '').toLowerCase();
  items.push({
    index: i + 1,
    tag: tag,
    type: norm(el.type || ''),
    role: norm(el.getAttribute('role')),
    text: norm(el.textContent).substring(0, 120),
    aria: norm(el.getAttribute('aria-label')),
    tooltip: norm(el.getAttribute('data-tooltip') || el.getAttribute('title')),
    placeholder: el.placeholder || '',
    name: el.name || el.id || '',
    href: el.href ? String(el.href).substring(0, 200) : '',
    inDialog: inDialog,
  });
}
return {
  title: document.title || '',
  url: location.href,
  total: all.length,
  items: items,
  text: previewChars > 0 ? norm(document.body ? document.body.innerText : '').substring(0, previewChars) : '',
};
""")

# arguments: [mode ('index'|'selector'|'text'), query, preferDialog]
CLICK_JS = _script("""
const mode = arguments[0];
const query = arguments[1];
const preferDialog = arguments[2] !== false;
const pickClickable = (el) => {
  if (!el) return null;
  if (el.matches && el.matches(CLICKABLE)) return el;
  return (el.closest && el.closest(CLICKABLE)) || null;
};
const byText = (root, exact) => {
  const q = norm(query).toLowerCase();
  for (const el of [...root.querySelectorAll(CLICKABLE)].filter(vis)) {
    const fields = [
      norm(el.getAttribute('aria-label')).toLowerCase(),
      norm(el.textContent).toLowerCase(),
      norm(el.getAttribute('data-tooltip') || el.getAttribute('title')).toLowerCase(),
    ].filter(Boolean);
    if (exact ? fields.some((f) => f === q) : fields.some((f) => f.includes(q))) return el;
  }
  return null;
};
let target = null;
let index = null;
if (mode === 'index') {
  index = parseInt(query, 10);
  const hit = resolveIndex(index);
  if (!hit.el) return {ok: false, error: 'element ' + index + ' not found (page has ' + hit.count + ' elements)'};
  target = hit.el;
} else {
  const roots = preferDialog ? [...openDialogs(), document] : [document];
  if (mode === 'selector') {
    try {
      for (const root of roots) { target = root.querySelector(query); if (target) break; }
    } catch (e) {
      return {ok: false, error: 'invalid selector ' + query + ': ' + e.message};
    }
  } else {
    for (const root of roots) { target = byText(root, true) || byText(root, false); if (target) break; }
  }
  target = pickClickable(target);
}
if (!target || !vis(target)) return {ok: false, error: 'no clickable element found for ' + query};
if (target.focus) target.focus();
target.click();
const info = describe(target);
info.ok = true;
info.index = index;
return info;
""")

# arguments: [mode ('index'|'selector'), target, text]
TYPE_JS = _script("""
const mode = arguments[0];
const target = arguments[1];
const text = arguments[2];
let el = null;
if (mode === 'index') {
  const hit = resolveIndex(parseInt(target, 10));
  if (!hit.el) return {ok: false, error: 'element ' + target + ' not found (page has ' + hit.count + ' elements)'};
  el = hit.el;
} else {
  try { el = document.querySelector(target); } catch (e) { el = null; }
  if (!el) {
    el = [...document.querySelectorAll('input[placeholder],textarea[placeholder]')]
      .find((c) => (c.placeholder || '').includes(target)) || null;
  }
  if (!el) {
    for (const label of document.querySelectorAll('label')) {
      if ((label.textContent || '').includes(target)) {
        el = label.htmlFor ? document.getElementById(label.htmlFor) : label.querySelector('input,textarea,select');
        if (el) break;
      }
    }
  }
  if (!el) {
    el = [...document.querySelectorAll('input,textarea,[contenteditable="true"]')]
      .find((c) => norm(c.getAttribute('aria-label')).toLowerCase() === norm(target).toLowerCase()) || null;
  }
}
if (!el) return {ok: false, error: 'no input found for: ' + target};
el.focus();
if (el.isContentEditable) { el.textContent = text; } else { el.value = text; }
el.dispatchEvent(new Event('input', {bubbles: true}));
el.dispatchEvent(new Event('change', {bubbles: true}));
const info = describe(el);
info.ok = true;
return info;
""")

# arguments: [key, selector or '']
PRESS_KEY_JS = _script("""
const key = arguments[0];
const sel = arguments[1];
let el = null;
if (sel) {
  try { el = document.querySelector(sel); } catch (e) { return {ok: false, error: 'invalid selector ' + sel + ': ' + e.message}; }
  if (!el) return {ok: false, error: 'no element found for ' + sel};
}
if (!el) el = document.activeElement || document.body;
if (el.focus) el.focus();
const opts = {key: key, code: key, bubbles: true, cancelable: true};
el.dispatchEvent(new KeyboardEvent('keydown', opts));
el.dispatchEvent(new KeyboardEvent('keypress', opts));
el.dispatchEvent(new KeyboardEvent('keyup', opts));
let submitted = false;
if (key.toLowerCase() === 'enter' && el.form) {
  try { el.form.requestSubmit ? el.form.requestSubmit() : el.form.submit(); submitted = true; } catch (e) {}
}
return {ok: true, tag: (el.tagName || '').toLowerCase(), submitted: submitted};
""")

# arguments: [mode ('index'|'selector'), target, value]
SELECT_JS = _script("""
const mode = arguments[0];
const target = arguments[1];
const value = arguments[2];
let el = null;
if (mode === 'index') {
  el = resolveIndex(parseInt(target, 10)).el;
} else {
  try { el = document.querySelector(target); } catch (e) { return {ok: false, error: 'invalid selector ' + target + ': ' + e.message}; }
}
if (!el || el.tagName !== 'SELECT') return {ok: false, error: 'select element not found: ' + target};
const opt = [...el.options].find((o) => o.value === value) || [...el.options].find((o) => (o.text || '').includes(value));
if (!opt) return {ok: false, error: 'option not found: ' + value};
el.value = opt.value;
el.dispatchEvent(new Event('input', {bubbles: true}));
el.dispatchEvent(new Event('change', {bubbles: true}));
return {ok: true, text: norm(opt.text)};
""")

# arguments: [dy]
SCROLL_JS = "window.scrollBy(0, arguments[0]); return Math.round(window.scrollY);"

# arguments: [selector]; null for an invalid selector
ELEMENT_EXISTS_JS = """
try { return document.querySelector(arguments[0]) !== null; } catch (e) { return null; }
"""

PAGE_METRICS_JS = """
return [
  ((document.body && document.body.innerText) || '').length,
  document.querySelectorAll('a[href],button,input,select,textarea,[role]').length
];
"""


__all__ = [
    "INTERACTIVE_SELECTOR",
    "CLICKABLE_SELECTOR",
    "DIALOG_SELECTOR",
    "COLLECT_ELEMENTS_JS",
    "CLICK_JS",
    "TYPE_JS",
    "PRESS_KEY_JS",
    "SELECT_JS",
    "SCROLL_JS",
    "ELEMENT_EXISTS_JS",
    "PAGE_METRICS_JS",
]
