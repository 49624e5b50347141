from __future__ import annotations

from typing import Any

_CDN = "https://scontent-frt3-2.cdninstagram.com/vp"


def _fixture_post(shortcode: str, image_path: str, caption: str) -> dict[str, Any]:
    url = f"{_CDN}/{image_path}"
    return {
        "id": shortcode,
        "shortcode": shortcode,
        "link": f"https://www.instagram.com/p/{shortcode}",
        "images": {
            "thumbnail": {"url": url},
            "low_resolution": {"url": url},
            "standard_resolution": {"url": url},
        },
        "caption": {"text": caption},
    }


FIXTURE_POSTS: tuple[dict[str, Any], ...] = (
    _fixture_post(
        "BiyyyQOHQBt",
        "cb10f93d7be1b59082a093ea70cea28c/5B95A298/t51.2885-15/e35/"
        "31686869_155643895287485_8866883111267336192_n.jpg",
        "Congratulations to current Part-time MBA Dmitriy Brussintsov (centre) for reaching "
        "the finals of the 2018 “INSIDE LVMH” program. He joined up with some students from "
        "our SIM programme to take part in this global competition. 📷",
    ),
    _fixture_post(
        "BiweaukHdTT",
        "5176a799b97c484b87003a93fc0f9361/5B9BFEBF/t51.2885-15/e35/"
        "31748634_208122266657584_781542455685152768_n.jpg",
        "#Zurich, join us tomorrow after work for our #MBA Info Event at Haus zum Rüden. "
        "Meet alumni and the team to ask your questions from 18:00 - 21:00. "
        "Free registration, link in bio.",
    ),
    _fixture_post(
        "BiW1N0nnbWK",
        "6f32db9f4aa58adfe439af05e5800591/5B8FA882/t51.2885-15/e35/"
        "31401052_388569301644582_3591806034961760256_n.jpg",
        "Some of our MBAs did a recent study mission to Singapore 🇸🇬",
    ),
    _fixture_post(
        "BiMHoMcHNhE",
        "56123e648bf71fd33ab82f77b6e6b591/5B887613/t51.2885-15/e35/"
        "31463316_1706845616071769_342089974713155584_n.jpg",
        "Another big #thankyou to those who contributed to “Tanzanight” in support of the "
        "Full-time MBA charity project! Photo set 2/2.",
    ),
    _fixture_post(
        "BiMESp9nfCZ",
        "469f815827618c644b2f3a9c13fa00f2/5B859A05/t51.2885-15/e35/"
        "30900040_237201903496744_5893046892228509696_n.jpg",
        "Thank you to everyone who came out to support our MBAs on Friday for their "
        "#fundraiser! Photo set Part 1/2.",
    ),
    _fixture_post(
        "BiFa_jOn_Z7",
        "241ff938e81f5edeb9997173307fdf38/5B91B4FD/t51.2885-15/e35/"
        "30605245_420796315033149_8530602719772147712_n.jpg",
        "Arjun, from the Class of 2018, showing his skills on the axe 🤘🏼 Last night our "
        "Full-time MBAs kicked off their charity #fundraiser with a concert. More concert "
        "photos coming soon to our Facebook, Instagram and Tumblr.",
    ),
    _fixture_post(
        "Bh8ej1FnS1W",
        "5728c0c53beec73bc3ace6277a12bb2e/5B7B00CC/t51.2885-15/e35/"
        "30592556_947382698755478_8477859357441130496_n.jpg",
        "Career Service Managers, David O’Connor and Dominique Gobat, delivering an "
        "interactive session to our Full-time MBAs yesterday on the topic of #networking, "
        "covering both in-person and online strategies.",
    ),
    _fixture_post(
        "Bh6ReH4nEp6",
        "a41ee72b9382ae3ffb169cf72bc8843d/5B767BA7/t51.2885-15/e35/"
        "30591890_2092233024390221_8676976622559035392_n.jpg",
        "👏👏Well done to all our MBAs, alumni and their friends and family who came out to "
        "represent the University of St.Gallen MBA at this year’s Zurich #Marathon Team Run! "
        "🏃‍♀️🏃",
    ),
    _fixture_post(
        "BhyU_8KHJMW",
        "dc5ee7a01ee6f5035a96d6899869baca/5B770F7F/t51.2885-15/e35/"
        "30841906_191888794939666_8667454967826612224_n.jpg",
        "⏱The new #light installation on the entrance of St.Gallen’s train station is a "
        "clock. Have you deciphered it yet?",
    ),
)


def fixture_posts() -> list[dict[str, Any]]:
    """
    Return a fresh copy of the built-in posts.

    Used as the last fallback so a configured block is never visually empty.
    Every post carries all three image variants.
    """
    return [
        {
            **post,
            "images": {key: dict(value) for key, value in post["images"].items()},
            "caption": dict(post["caption"]),
        }
        for post in FIXTURE_POSTS
    ]
