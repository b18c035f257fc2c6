"""
Application-level tests: health, docs, error envelope and CLI
"""
from baggs.models import User


class TestAppRoutes:

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json()['status'] == 'ok'

    def test_index_links_docs(self, client):
        response = client.get('/')

        assert response.get_json()['docs'] == '/api-docs'

    def test_security_headers(self, client):
        response = client.get('/health')

        assert response.headers['X-Content-Type-Options'] == 'nosniff'
        assert response.headers['X-Frame-Options'] == 'DENY'

    def test_unknown_route_uses_envelope(self, client):
        response = client.get('/api/v1/nowhere')

        assert response.status_code == 404
        assert response.get_json() == {'success': False, 'status': 404, 'message': 'Route not found'}

    def test_method_not_allowed(self, client):
        response = client.patch('/api/v1/auth/login')

        assert response.status_code == 405
        assert response.get_json()['success'] is False


class TestApiDocs:

    def test_document_lists_api_routes(self, client):
        response = client.get('/api-docs')

        assert response.status_code == 200
        document = response.get_json()
        assert document['openapi'].startswith('3.')
        assert '/api/v1/transfers/{transfer_id}' in document['paths']
        assert '/health' not in document['paths']

    def test_protected_routes_declare_bearer_auth(self, client):
        paths = client.get('/api-docs').get_json()['paths']

        update = paths['/api/v1/transfers/{transfer_id}']['put']
        assert update['security'] == [{'bearerAuth': []}]
        assert update['tags'] == ['transfers']
        assert update['summary'] == 'Update a transfer (owner or admin)'
        assert update['parameters'][0]['name'] == 'transfer_id'

    def test_public_routes_have_no_security(self, client):
        paths = client.get('/api-docs').get_json()['paths']

        assert 'security' not in paths['/api/v1/ads/{ad_id}']['get']
        assert 'security' not in paths['/api/v1/auth/login']['post']


class TestCli:

    def test_create_admin(self, app):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['create-admin', 'Root', 'Root@Example.com', '555-0000', 'secret123', 'ADM-1'])

        assert 'Admin user created' in result.output
        admin = User.query.filter_by(email='root@example.com').one()
        assert admin.role == 'admin'
        assert admin.check_password('secret123')

    def test_create_admin_skips_existing_email(self, app, admin):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['create-admin', 'Root', admin.email, '555-0000', 'secret123', 'ADM-2'])

        assert 'already exists' in result.output
        assert User.query.filter_by(role='admin').count() == 1

    def test_init_db(self, app):
        result = app.test_cli_runner().invoke(args=['init-db'])

        assert 'Database tables created' in result.output
