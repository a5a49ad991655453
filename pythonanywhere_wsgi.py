import sys
import os

# Add your project directory to the sys.path
project_home = os.environ.get('RECIPE_DIGITIZER_HOME', '/home/YOUR_USERNAME/recipe-digitizer')
if project_home not in sys.path:
    sys.path.insert(0, project_home)

# Set the working directory
os.chdir(project_home)

# Build the app (runs schema reconciliation before serving)
from app import create_app
application = create_app('production')
