from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

JS_INTERACTIVE_ELEMENTS = r"""
() => {
  const elements = [];
  const seen = new Set();
  const selectors = [
    "a", "button", "input", "textarea", "select",
    "[role='button']", "[onclick]", "[type='submit']"
  ];

  for (const selector of selectors) {
    document.querySelectorAll(selector).forEach((el) => {
      if (seen.has(el)) return;
      seen.add(el);
      const rect = el.getBoundingClientRect();
      const isVisible =
        rect.width > 0 && rect.height > 0 &&
        rect.top >= 0 && rect.left >= 0 &&
        rect.bottom <= window.innerHeight &&
        rect.right <= window.innerWidth;
      if (!isVisible) return;

      const text = (el.textContent || "").trim() ||
        el.getAttribute("placeholder") ||
        el.getAttribute("value") ||
        el.getAttribute("aria-label") ||
        "";
      if (!text || text.length >= 100) return;

      elements.push({
        tag: el.tagName.toLowerCase(),
        text: text,
        id: el.id || "",
        classes: typeof el.className === "string" ? el.className : "",
        type: el.type || "",
      });
    });
  }
  return elements;
}
"""

JS_HEADINGS = r"""
() => {
  const headings = [];
  for (let i = 1; i <= 6; i++) {
    document.querySelectorAll("h" + i).forEach((h) => {
      const text = (h.textContent || "").trim();
      if (text) headings.push("H" + i + ": " + text);
    });
  }
  return headings;
}
"""


@dataclass
class ElementInfo:
    tag: str
    text: str
    id: str = ""
    classes: str = ""
    type: str = ""

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "ElementInfo":
        return cls(
            tag=str(raw.get("tag", "")),
            text=str(raw.get("text", "")),
            id=str(raw.get("id", "") or ""),
            classes=str(raw.get("classes", "") or ""),
            type=str(raw.get("type", "") or ""),
        )


@dataclass
class PageSnapshot:
    url: str
    title: str
    elements: List[ElementInfo] = field(default_factory=list)
    headings: List[str] = field(default_factory=list)


def format_page_state(snapshot: PageSnapshot) -> str:
    lines = [f"Current URL: {snapshot.url}", ""]
    if snapshot.title:
        lines += [f"Page Title: {snapshot.title}", ""]
    lines.append("=== INTERACTIVE ELEMENTS ===")

    lines += ["", "--- BUTTONS ---"]
    lines += [f"- {el.text}" for el in snapshot.elements if el.tag == "button" or el.type == "button"]

    lines += ["", "--- LINKS ---"]
    lines += [f"- {el.text}" for el in snapshot.elements if el.tag == "a"]

    lines += ["", "--- FORM ELEMENTS ---"]
    lines += [
        f"- {el.text} [{el.type}]"
        for el in snapshot.elements
        if el.tag in {"input", "textarea", "select"}
    ]

    if snapshot.headings:
        lines += ["", "--- HEADINGS ---"]
        lines += [f"- {h}" for h in snapshot.headings]
    return "\n".join(lines) + "\n"


async def capture_snapshot(page: Any) -> PageSnapshot:
    raw_elements = await page.evaluate(JS_INTERACTIVE_ELEMENTS)
    elements = [ElementInfo.from_raw(item) for item in raw_elements or [] if isinstance(item, dict)]
    elements = [el for el in elements if el.text]
    raw_headings = await page.evaluate(JS_HEADINGS)
    headings = [h for h in raw_headings or [] if isinstance(h, str)]
    title = await page.title()
    return PageSnapshot(url=page.url, title=title, elements=elements, headings=headings)
