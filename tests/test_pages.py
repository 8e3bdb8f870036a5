"""Regression tests for the server-rendered pages and their route guards."""

import pytest
from fastapi.testclient import TestClient

from auth.permissions import Role
from legal.repository import ClientRepository, SettingsRepository, UserRepository

from conftest import PASSWORD, ROLE_EMAILS


@pytest.fixture
def signed_in(app):
    """signed_in(Role.STAFF) -> TestClient holding that user's access_token cookie"""
    def _signed_in(role, lang="en"):
        client = TestClient(app)
        response = client.post(
            "/login",
            data={"email": ROLE_EMAILS[role], "password": PASSWORD, "next": "/dashboard"},
            follow_redirects=False,
        )
        assert response.status_code == 303
        client.cookies.set("lang", lang)
        return client
    return _signed_in


def _nav_keys(html):
    return {key for key in ("dashboard", "clients", "cases", "hearings", "invoices",
                            "reports", "users", "settings", "audit_logs")
            if f'data-nav="{key}"' in html}


class TestAnonymous:

    @pytest.mark.parametrize("path", ["/dashboard", "/clients", "/users", "/settings", "/audit-logs"])
    def test_protected_pages_redirect_to_login(self, client, path):
        response = client.get(path, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == f"/login?next={path}"

    def test_root_redirects_to_dashboard(self, client):
        response = client.get("/", follow_redirects=False)
        assert response.headers["location"] == "/dashboard"

    def test_login_page_renders(self, client):
        response = client.get("/login?lang=en")
        assert response.status_code == 200
        assert 'name="password"' in response.text

    def test_login_page_is_rtl_in_arabic(self, client):
        assert 'dir="rtl"' in client.get("/login?lang=ar").text

    def test_bad_credentials_rerender_form(self, client):
        response = client.post("/login", data={"email": "staff@example.com", "password": "bad"},
                               follow_redirects=False)
        assert response.status_code == 401
        assert "Invalid email or password" in response.text
        assert "access_token" not in response.cookies

    def test_login_ignores_offsite_next(self, client):
        response = client.post(
            "/login",
            data={"email": ROLE_EMAILS[Role.STAFF], "password": PASSWORD, "next": "//evil.example.com"},
            follow_redirects=False,
        )
        assert response.headers["location"] == "/dashboard"

    def test_forged_cookie_is_anonymous(self, client):
        client.cookies.set("access_token", "forged")
        response = client.get("/dashboard", follow_redirects=False)
        assert response.status_code == 302


class TestNavigation:

    def test_staff_navigation(self, signed_in):
        html = signed_in(Role.STAFF).get("/dashboard").text
        assert _nav_keys(html) == {"dashboard", "clients", "cases", "hearings", "invoices", "reports"}
        assert 'data-role="staff"' in html

    def test_lawyer_navigation(self, signed_in):
        html = signed_in(Role.LAWYER).get("/dashboard").text
        assert _nav_keys(html) == {"dashboard", "clients", "cases", "hearings", "invoices", "reports"}

    def test_admin_navigation(self, signed_in):
        html = signed_in(Role.ADMIN).get("/dashboard").text
        assert _nav_keys(html) == {"dashboard", "clients", "cases", "hearings", "invoices",
                                   "reports", "users", "settings"}

    def test_super_admin_sees_everything(self, signed_in):
        html = signed_in(Role.SUPER_ADMIN).get("/dashboard").text
        assert "audit_logs" in _nav_keys(html)


class TestGuards:

    def test_staff_on_users_gets_access_denied(self, signed_in):
        response = signed_in(Role.STAFF).get("/users", follow_redirects=False)
        assert response.status_code == 403
        assert 'data-page="access-denied"' in response.text

    def test_staff_on_audit_logs_redirected_to_dashboard(self, signed_in):
        response = signed_in(Role.STAFF).get("/audit-logs", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/dashboard"

    def test_super_admin_sees_audit_log(self, signed_in):
        response = signed_in(Role.SUPER_ADMIN).get("/audit-logs")
        assert response.status_code == 200
        assert "login_success" in response.text

    def test_lawyer_cannot_open_settings(self, signed_in):
        assert signed_in(Role.LAWYER).get("/settings").status_code == 403

    def test_logout_clears_session(self, signed_in):
        client = signed_in(Role.ADMIN)
        response = client.post("/logout", follow_redirects=False)
        assert response.headers["location"] == "/login"
        assert client.get("/dashboard", follow_redirects=False).status_code == 302


class TestButtons:

    def test_dashboard_buttons_follow_role(self, signed_in):
        staff = signed_in(Role.STAFF).get("/dashboard").text
        assert 'data-action="clients:create"' not in staff
        assert 'data-action="cases:create"' not in staff
        assert 'data-action="reports:export"' in staff
        assert 'data-action="open-users"' not in staff

        lawyer = signed_in(Role.LAWYER).get("/dashboard").text
        assert 'data-action="cases:create"' in lawyer
        assert 'data-action="clients:create"' not in lawyer

        admin = signed_in(Role.ADMIN).get("/dashboard").text
        assert 'data-action="clients:create"' in admin
        assert 'data-action="open-users"' in admin

    def test_list_buttons_follow_role(self, app, signed_in, auth_headers):
        api = TestClient(app)
        api.post("/api/clients", headers=auth_headers(Role.ADMIN), json={
            "client_name_ar": "شركة النيل", "client_type": "company", "cash_pro_bono": "cash",
        })

        staff = signed_in(Role.STAFF).get("/clients").text
        assert 'data-action="clients:export"' in staff
        assert 'data-action="clients:edit"' not in staff
        assert 'data-action="clients:delete"' not in staff

        lawyer = signed_in(Role.LAWYER).get("/clients").text
        assert 'data-action="clients:edit"' in lawyer
        assert 'data-action="clients:delete"' not in lawyer

        admin = signed_in(Role.ADMIN).get("/clients").text
        assert 'data-action="clients:delete"' in admin

    def test_no_delete_button_on_own_user_row(self, signed_in, user_ids):
        html = signed_in(Role.SUPER_ADMIN).get("/users").text
        assert f'href="/users/{user_ids[Role.SUPER_ADMIN]}/edit"' in html
        assert html.count('data-action="users:delete"') == len(user_ids) - 1

    def test_settings_edit_button_admin_only(self, signed_in):
        assert 'data-action="system_settings:edit"' in signed_in(Role.ADMIN).get("/settings").text


def _create_client(app, auth_headers, **overrides):
    payload = {"client_name_ar": "شركة النيل", "client_type": "company", "cash_pro_bono": "cash", **overrides}
    response = TestClient(app).post("/api/clients", headers=auth_headers(Role.ADMIN), json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


class TestRecordForms:

    def test_export_link_downloads_with_cookie(self, signed_in):
        staff = signed_in(Role.STAFF)
        assert 'href="/clients/export"' in staff.get("/clients").text
        response = staff.get("/clients/export")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.text.lstrip("\ufeff").startswith("id,")

    def test_report_export_link_downloads_with_cookie(self, signed_in):
        staff = signed_in(Role.STAFF)
        assert 'href="/reports/export"' in staff.get("/reports").text
        response = staff.get("/reports/export")
        assert response.status_code == 200
        assert "section,key,value" in response.text

    def test_lists_without_export_have_no_export_route(self, signed_in):
        assert signed_in(Role.STAFF).get("/users/export").status_code == 404

    def test_anonymous_form_redirects_to_login(self, client):
        response = client.get("/clients/new", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/login?next=/clients/new"

    def test_staff_cannot_open_create_form(self, signed_in):
        response = signed_in(Role.STAFF).get("/clients/new", follow_redirects=False)
        assert response.status_code == 403
        assert 'data-page="access-denied"' in response.text

    def test_staff_cannot_post_create_form(self, signed_in, db_session):
        response = signed_in(Role.STAFF).post("/clients/new", data={
            "client_name_ar": "شركة النيل", "client_type": "company", "cash_pro_bono": "cash",
        }, follow_redirects=False)
        assert response.status_code == 403
        assert ClientRepository.query(db_session).count() == 0

    def test_admin_creates_client(self, signed_in, db_session):
        admin = signed_in(Role.ADMIN)
        form = admin.get("/clients/new").text
        assert 'action="/clients/new"' in form
        assert 'name="client_name_ar"' in form

        response = admin.post("/clients/new", data={
            "client_name_ar": "شركة النيل", "client_name_en": "", "client_type": "company",
            "cash_pro_bono": "cash", "status": "", "email": "",
        }, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/clients"

        created = ClientRepository.query(db_session).one()
        assert created.client_name_ar == "شركة النيل"
        assert created.status == "active"
        assert "شركة النيل" in admin.get("/clients").text

    def test_invalid_create_rerenders_form(self, signed_in, db_session):
        response = signed_in(Role.ADMIN).post("/clients/new", data={
            "client_name_ar": "شركة النيل", "client_type": "partnership",
        }, follow_redirects=False)
        assert response.status_code == 422
        assert 'data-field="client_type"' in response.text
        assert 'data-field="cash_pro_bono"' in response.text
        assert 'value="شركة النيل"' in response.text
        assert ClientRepository.query(db_session).count() == 0

    def test_lawyer_edits_client(self, app, signed_in, auth_headers, db_session):
        client_id = _create_client(app, auth_headers)
        lawyer = signed_in(Role.LAWYER)
        assert f'href="/clients/{client_id}/edit"' in lawyer.get("/clients").text

        form = lawyer.get(f"/clients/{client_id}/edit").text
        assert 'value="شركة النيل"' in form

        response = lawyer.post(f"/clients/{client_id}/edit", data={
            "client_name_ar": "شركة النيل", "client_name_en": "Nile Co.", "client_type": "company",
            "cash_pro_bono": "cash", "status": "active",
        }, follow_redirects=False)
        assert response.status_code == 303
        assert ClientRepository.get_by_id(db_session, client_id).client_name_en == "Nile Co."

    def test_cleared_required_field_is_rejected(self, app, signed_in, auth_headers, db_session):
        client_id = _create_client(app, auth_headers)
        response = signed_in(Role.LAWYER).post(f"/clients/{client_id}/edit", data={
            "client_name_ar": "", "client_type": "company", "cash_pro_bono": "cash", "status": "active",
        }, follow_redirects=False)
        assert response.status_code == 422
        assert 'data-field="client_name_ar"' in response.text
        assert ClientRepository.get_by_id(db_session, client_id).client_name_ar == "شركة النيل"

    def test_edit_missing_record(self, signed_in):
        assert signed_in(Role.LAWYER).get("/clients/9999/edit").status_code == 404

    def test_admin_deletes_client(self, app, signed_in, auth_headers, db_session):
        client_id = _create_client(app, auth_headers)
        response = signed_in(Role.ADMIN).post(f"/clients/{client_id}/delete", follow_redirects=False)
        assert response.status_code == 303
        assert ClientRepository.get_by_id(db_session, client_id) is None

    def test_lawyer_cannot_delete(self, app, signed_in, auth_headers, db_session):
        client_id = _create_client(app, auth_headers)
        response = signed_in(Role.LAWYER).post(f"/clients/{client_id}/delete", follow_redirects=False)
        assert response.status_code == 403
        assert ClientRepository.get_by_id(db_session, client_id) is not None

    def test_self_delete_shows_business_rule(self, signed_in, user_ids, db_session):
        own_id = user_ids[Role.SUPER_ADMIN]
        response = signed_in(Role.SUPER_ADMIN).post(f"/users/{own_id}/delete", follow_redirects=False)
        assert response.status_code == 400
        assert "Cannot delete your own account" in response.text
        assert UserRepository.get_by_id(db_session, own_id) is not None

    def test_admin_cannot_edit_super_admin_through_form(self, signed_in, user_ids, db_session):
        target = user_ids[Role.SUPER_ADMIN]
        response = signed_in(Role.ADMIN).post(f"/users/{target}/edit", data={
            "username": "renamed", "email": ROLE_EMAILS[Role.SUPER_ADMIN], "role": "super_admin",
            "is_active": "true",
        }, follow_redirects=False)
        assert response.status_code == 403
        assert UserRepository.get_by_id(db_session, target).username != "renamed"

    def test_unknown_list_is_not_found(self, signed_in):
        assert signed_in(Role.SUPER_ADMIN).get("/reports/new").status_code == 404


class TestSettingsForm:

    def test_admin_saves_settings(self, signed_in):
        admin = signed_in(Role.ADMIN)
        response = admin.post("/settings", data={"new_key": "default_currency", "new_value": "EGP"},
                              follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/settings"
        assert 'name="setting:default_currency" value="EGP"' in admin.get("/settings").text

        admin.post("/settings", data={"setting:default_currency": "USD"}, follow_redirects=False)
        assert 'value="USD"' in admin.get("/settings").text

    def test_empty_submission_is_rejected(self, signed_in):
        response = signed_in(Role.ADMIN).post("/settings", data={}, follow_redirects=False)
        assert response.status_code == 422
        assert "Validation failed" in response.text

    def test_lawyer_cannot_post_settings(self, signed_in, db_session):
        response = signed_in(Role.LAWYER).post("/settings", data={"new_key": "x", "new_value": "y"},
                                               follow_redirects=False)
        assert response.status_code == 403
        assert SettingsRepository.all(db_session) == {}


class TestViewerResolution:

    def test_page_resolves_token_once(self, app, signed_in, monkeypatch):
        browser = signed_in(Role.LAWYER)
        auth_manager = app.state.auth_manager
        calls = []
        get_user = auth_manager.get_user

        def counting_get_user(*args, **kwargs):
            calls.append(args)
            return get_user(*args, **kwargs)

        monkeypatch.setattr(auth_manager, "get_user", counting_get_user)
        assert browser.get("/dashboard").status_code == 200
        assert len(calls) == 1
