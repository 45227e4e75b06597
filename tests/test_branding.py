from solarquote.branding import DEFAULT_BRAND, email_branding, get_branding


class TestBranding:
    def test_unknown_slug_falls_back(self):
        assert get_branding("nope").slug == DEFAULT_BRAND
        assert get_branding(None).slug == DEFAULT_BRAND

    def test_slug_case_insensitive(self):
        assert get_branding(" Renewables ").slug == "renewables"

    def test_email_branding_is_a_copy(self):
        branding = email_branding()
        branding["platform_name"] = "changed"
        assert email_branding()["platform_name"] == "Voltflo"

    def test_default_pricing(self):
        pricing = get_branding().pricing
        assert pricing.seai_grant == 1800
        assert pricing.panel_watts == 440
