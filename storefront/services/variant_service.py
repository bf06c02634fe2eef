"""Variant resolution for the product detail page.

Given a product's variant groups, its per-option image/link overrides and
the combination-link bucket, work out which gallery image to show and which
purchase URL to send the shopper to as options are picked one at a time.

Every resolver here is total: missing keys, wrong types and out-of-range
indices fall through to the next tier instead of raising. A product with no
variant configuration goes through the same code and ends up on its main
image and its base Amazon URL.
"""
from collections import namedtuple
from itertools import product as cartesian

COMBO_KEY = "__combo__"
COMBO_SEPARATOR = "|"
PAIR_SEPARATOR = "="

VariantGroup = namedtuple("VariantGroup", ["name", "options"])


def _nested_dict(raw):
    """Keep only the group -> {option: value} shape, drop anything else."""
    if not isinstance(raw, dict):
        return {}
    return {
        group: dict(options)
        for group, options in raw.items()
        if isinstance(group, str) and isinstance(options, dict)
    }


def _lookup(mapping, group, option):
    options = mapping.get(group)
    if not isinstance(options, dict):
        return None
    return options.get(option)


def _non_empty_str(value):
    if isinstance(value, str) and value:
        return value
    return None


def _coerce_groups(raw):
    groups = []
    for group in raw or []:
        if isinstance(group, VariantGroup):
            groups.append(group)
        elif isinstance(group, dict):
            groups.append(
                VariantGroup(group.get("name") or "", tuple(group.get("options") or ()))
            )
    return groups


class VariantConfig:
    """Read-only view of one product's variant data, as the engine sees it."""

    def __init__(
        self,
        amazon_url,
        images=None,
        main_image="",
        groups=None,
        image_map=None,
        option_images=None,
        option_links=None,
    ):
        self.amazon_url = amazon_url
        self.images = list(images or [])
        self.main_image = main_image or ""
        self.groups = _coerce_groups(groups)
        self.image_map = _nested_dict(image_map)
        self.option_images = _nested_dict(option_images)
        self.option_links = _nested_dict(option_links)

    @property
    def gallery(self):
        """Images the gallery renders; index 0 is the main image."""
        source = self.images if self.images else [self.main_image]
        return [src for src in source if isinstance(src, str) and src]

    @property
    def combo_links(self):
        return self.option_links.get(COMBO_KEY, {})

    def declares(self, group, option):
        """True if ``option`` is one of the declared options of ``group``."""
        return any(g.name == group and option in g.options for g in self.groups)

    def __repr__(self):
        return f"<VariantConfig groups={[g.name for g in self.groups]}>"


# ---------------------------------------------------------------------------
# Combination keys
# ---------------------------------------------------------------------------

def build_combo_key(groups, selection):
    """Join ``name=value`` for each selected group, in declared group order.

    The admin editor and the storefront both go through this function, so a
    key written at save time matches the key looked up at read time as long
    as the group order has not changed since.
    """
    return COMBO_SEPARATOR.join(
        f"{group.name}{PAIR_SEPARATOR}{selection[group.name]}"
        for group in groups
        if group.name and selection.get(group.name)
    )


def parse_combo_key(key):
    selections = {}
    if not key:
        return selections
    for pair in key.split(COMBO_SEPARATOR):
        group, _, value = pair.partition(PAIR_SEPARATOR)
        if group:
            selections[group] = value
    return selections


def all_combo_keys(groups):
    """Every full-combination key, first group varying slowest."""
    usable = [g for g in groups if g.name and g.options]
    if not usable:
        return []
    keys = []
    for values in cartesian(*(g.options for g in usable)):
        selection = dict(zip((g.name for g in usable), values))
        keys.append(build_combo_key(usable, selection))
    return keys


def first_missing_combo_key(groups, existing):
    existing = existing or {}
    for key in all_combo_keys(groups):
        if key not in existing:
            return key
    return None


def orphaned_combo_keys(groups, option_links):
    """Saved combination keys that the current group list can never produce.

    Reordering or renaming groups after links were saved leaves those keys
    unreachable. With fewer than two groups the bucket is never consulted,
    so every entry counts. They are reported here and left in place.
    """
    bucket = _nested_dict(option_links).get(COMBO_KEY, {})
    if not bucket:
        return []
    reachable = set(all_combo_keys(groups)) if len(groups) > 1 else set()
    return [key for key in bucket if key not in reachable]


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------

def resolve_image_index(config, group, option):
    """Gallery index for a (group, option) pick.

    Explicit map entry first, then the first image whose URL contains the
    option text (case-insensitive), then the main image.
    """
    gallery = config.gallery
    mapped = _lookup(config.image_map, group, option)
    if (
        isinstance(mapped, int)
        and not isinstance(mapped, bool)
        and 0 <= mapped < len(gallery)
    ):
        return mapped

    needle = str(option).lower()
    for index, src in enumerate(gallery):
        if needle in src.lower():
            return index
    return 0


def resolve_purchase_url(config, selection, last_touched=None):
    """Purchase URL for the current selection.

    1. full-combination link, only when more than one group is declared
       and every group has a pick;
    2. the last-touched group's option link;
    3. the first selected option with a link, in selection order;
    4. the product's Amazon URL.
    """
    groups = config.groups
    if len(groups) > 1 and all(selection.get(g.name) for g in groups):
        key = build_combo_key(groups, selection)
        url = _non_empty_str(config.combo_links.get(key))
        if url:
            return url

    if last_touched and selection.get(last_touched):
        url = _non_empty_str(
            _lookup(config.option_links, last_touched, selection[last_touched])
        )
        if url:
            return url

    for group, option in selection.items():
        url = _non_empty_str(_lookup(config.option_links, group, option))
        if url:
            return url

    return config.amazon_url


def resolve_thumbnail(config, group, option):
    url = _non_empty_str(_lookup(config.option_images, group, option))
    if url is None:
        return None
    if url.startswith("http") or url.startswith("/"):
        return url
    return f"/{url}"


def thumbnail_key(group, option):
    return f"{group}::{option}"


# ---------------------------------------------------------------------------
# Per-view selection state
# ---------------------------------------------------------------------------

class VariantSelection:
    """Selection state for one shopper looking at one product.

    Created when the detail view opens and thrown away when it closes.
    Only the state lives here; the product's config is passed in on every
    load so admin edits show up on the next request.
    """

    def __init__(self, config, selection=None, last_touched=None,
                 image_index=0, failed_thumbnails=None):
        self.config = config
        self.selection = dict(selection or {})
        self.last_touched = last_touched
        self.image_index = image_index
        self.failed_thumbnails = set(failed_thumbnails or ())

    def select_option(self, group, option):
        # Other groups keep their picks; re-picking a group keeps its position.
        self.selection[group] = option
        self.last_touched = group
        # Undeclared pairs are kept but never move the gallery.
        if self.config.declares(group, option):
            self.image_index = resolve_image_index(self.config, group, option)

    def select_image(self, index):
        if isinstance(index, int) and 0 <= index < len(self.config.gallery):
            self.image_index = index
            return True
        return False

    @property
    def purchase_url(self):
        return resolve_purchase_url(self.config, self.selection, self.last_touched)

    @property
    def primary_image(self):
        gallery = self.config.gallery
        if 0 <= self.image_index < len(gallery):
            return gallery[self.image_index]
        return self.config.main_image

    def thumbnail(self, group, option):
        if thumbnail_key(group, option) in self.failed_thumbnails:
            return None
        return resolve_thumbnail(self.config, group, option)

    def mark_thumbnail_failed(self, group, option):
        """Remember a thumbnail that failed to load; it is never offered again.

        Returns False for pairs the product does not declare.
        """
        if not self.config.declares(group, option):
            return False
        self.failed_thumbnails.add(thumbnail_key(group, option))
        return True

    def options_state(self):
        return [
            {
                "name": group.name,
                "options": [
                    {
                        "option": option,
                        "thumbnail": self.thumbnail(group.name, option),
                        "active": self.selection.get(group.name) == option,
                    }
                    for option in group.options
                    if option
                ],
            }
            for group in self.config.groups
        ]

    def to_dict(self):
        return {
            "selection": [[group, option] for group, option in self.selection.items()],
            "last_touched": self.last_touched,
            "image_index": self.image_index,
            "failed_thumbnails": sorted(self.failed_thumbnails),
        }

    @classmethod
    def from_dict(cls, config, data):
        pairs = data.get("selection") or []
        index = data.get("image_index")
        selection = cls(
            config,
            selection=[(group, option) for group, option in pairs],
            last_touched=data.get("last_touched"),
            failed_thumbnails=data.get("failed_thumbnails"),
        )
        # Image list may have shrunk since the state was saved.
        if not selection.select_image(index):
            selection.image_index = 0
        return selection

    def __repr__(self):
        return f"<VariantSelection {self.selection} last={self.last_touched}>"
