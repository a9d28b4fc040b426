from backoffice import create_app

# This is the entry point for local development.
# It creates the Flask app instance using the factory from the backoffice package.
app = create_app()

if __name__ == '__main__':
    # 'debug=True' allows for hot-reloading when you save changes.
    app.run(debug=True)
