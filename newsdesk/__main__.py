"""
Run the Newsdesk API with the Flask development server.

    python -m newsdesk
"""

from newsdesk import create_app


def main():
    app = create_app()
    port = app.config['PORT']

    print("\n" + "=" * 60)
    print("Newsdesk API")
    print("=" * 60)
    print(f"API:             http://localhost:{port}/api")
    print(f"Health:          http://localhost:{port}/health")
    print(f"Short links:     http://localhost:{port}/s/<slug>")
    print("=" * 60 + "\n")

    # The reloader would start a second publish scheduler
    app.run(host='0.0.0.0', port=port, debug=app.config.get('ENVIRONMENT') == 'development',
            use_reloader=False)


if __name__ == '__main__':
    main()
