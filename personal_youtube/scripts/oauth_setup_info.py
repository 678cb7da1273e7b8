from __future__ import annotations

import argparse

from personal_youtube.config import AppSettings, load_settings

GOOGLE_OAUTH_SETUP_DOCS_URL = "https://developers.google.com/youtube/registering_an_application"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Show the Google OAuth registration details for the personal YouTube repository.",
    )
    parser.add_argument(
        "--public-base-url",
        type=str,
        default=None,
        help="Override PERSONAL_YOUTUBE_PUBLIC_BASE_URL when computing the redirect URI.",
    )
    return parser.parse_args(argv)


def describe_setup(settings: AppSettings) -> list[str]:
    lines = [
        f"Register this site with Google as described in: {GOOGLE_OAUTH_SETUP_DOCS_URL}",
        "Enter the following URL as an 'Authorized redirect URI':",
        f"  {settings.redirect_uri}",
        "Enable the 'YouTube Data API v3' service for the project.",
    ]
    missing = [
        name
        for name, value in (
            ("PERSONAL_YOUTUBE_CLIENT_ID", settings.client_id),
            ("PERSONAL_YOUTUBE_CLIENT_SECRET", settings.client_secret),
        )
        if value is None
    ]
    if missing:
        lines.append(f"Missing configuration: {', '.join(missing)}")
    else:
        lines.append("Client ID and secret are configured.")
    return lines


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = load_settings(validate_oauth_secrets=False)
    if args.public_base_url is not None and args.public_base_url.strip():
        settings = settings.model_copy(
            update={"public_base_url": args.public_base_url.strip().rstrip("/")}
        )

    for line in describe_setup(settings):
        print(line)


if __name__ == "__main__":
    main()
