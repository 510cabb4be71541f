from dotenv import load_dotenv
load_dotenv()

from planchat import create_app
import logging
import os

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)

app = create_app()

if __name__ == '__main__':
    app.run(debug=True, port=int(os.environ.get('PORT', 5002)), host='0.0.0.0')
