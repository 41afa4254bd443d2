# framely

Capture the web, frame by frame.

`framely` crawls a website from a URL you give it and saves a full-page
screenshot of every page it reaches on the same scheme and host. A headless
Chrome or Chromium browser takes the screenshots over the DevTools protocol.
One of `google-chrome`, `google-chrome-stable`, `chromium`,
`chromium-browser` or `chrome` must be on your `PATH`.

## Installation

```
pip install .
```

To install the test tools as well, use `pip install .[test]`. Then run
`pytest`.

## Usage

Run the interactive command:

```
framely
```

The command clears the screen and prints a banner. It takes no options
except `--help`. It then asks for these settings:

- **Target website URL.** `https://` is added when no scheme is given. The
  host must be a domain name such as `example.com`.
- **Check sitemap.xml for additional URLs?** The default is yes. The command
  reads `<base>/sitemap.xml` and queues the same-site pages it lists.
- **Check robots.txt for sitemap references?** The default is yes. The
  command follows every `Sitemap:` line in `<base>/robots.txt` whose URL
  starts with `http`.
- **Maximum crawl depth.** The default is 5, and the value must be from 1 to
  10.
- **Enable parallel processing?** The default is no. If you answer yes, the
  command also asks for the number of workers: the default is 5, and the value
  must be from 1 to 10. All workers share one browser, and the browser loads
  one page at a time.
- **Additional URL patterns to skip.** Separate them with commas. A URL is
  skipped when it contains a pattern, ignoring case. `/wp-admin` is always
  skipped.

An empty or invalid answer is handled as follows:

- An empty URL, or a URL without a valid domain, stops the command with a
  configuration error.
- A depth or worker count that is out of range stops the command the same
  way.
- A yes/no question that gets an answer it does not recognise uses its
  default.

The command exits with status 0 on success and 1 on error. While it crawls,
it logs its progress to standard error.

## What it writes

The command writes everything to the `screenshots/` directory in the current
working directory:

- **One image per page.** The file is named after the URL's path and query,
  reduced to letters, digits, `-` and `_`, and it has a `.png` suffix. The
  home page becomes `homepage.png`. With the default quality of 90 the
  browser encodes the image as JPEG. Only a quality of 100 gives PNG data.
- **`report.json`.** It holds every result, with its URL, file name, success
  flag, error, timestamp, file size in bytes and capture time in
  milliseconds. It also holds totals and the average page size.
- **`summary.txt`.** A readable summary of the run. It contains terminal
  colour codes.

If you run the command again with the same directory, it skips the pages it
captured successfully before. It adds the new results to the existing report.

The crawl never follows these links:

- links to documents, archives, images, audio and video: `.pdf`, `.doc`,
  `.docx`, `.xls`, `.xlsx`, `.zip`, `.rar`, `.exe`, `.dmg`, `.pkg`, `.mp4`,
  `.avi`, `.mov`, `.mp3`, `.wav`, `.jpg`, `.jpeg`, `.png`, `.gif` and `.svg`;
- `mailto:`, `tel:` and `javascript:` links;
- links to another scheme or host.

For each page, the browser waits for the page to load. It then waits 3
seconds before it takes the screenshot. In sequential mode the crawl waits 1
second between pages.

## Library use

You can also use the parts of the package on their own.

- **`framely.urls`** holds the URL helpers: `is_valid_url`, `normalize_url`,
  `fix_relative_url`, `should_skip_url`, `generate_filename`,
  `extract_domain`, `is_https`, `add_https_if_missing`, `get_path_from_url`
  and `has_query_params`.
- **`framely.config.Config`** holds every setting. This includes the ones the
  command does not ask for:
  - `screenshot_delay` and `request_delay`, in seconds;
  - `viewport_width` and `viewport_height`;
  - `quality`, `user_agent` and `output_dir`.
- **`framely.discovery.DiscoveryService`** reads sitemaps and robots.txt with
  a `requests` session. `extract_sitemap_references` parses robots.txt text.
- **`framely.browser.BrowserService`** starts the browser on first use. It
  has `capture_screenshot`, `extract_links` and `check_connection`, and it
  works as a context manager.
- **`framely.report.ReportService`** loads, merges and writes `report.json`
  and `summary.txt`.
- **`framely.models`** holds the records: `ScreenshotResult`, `Report`,
  `SitemapURL` and `CrawlSession`. It also has `parse_urlset` for sitemap XML.
- **`framely.app.AppService`** runs a whole crawl from a `Config`. Call
  `run()` to do this.

```python
from framely.urls import normalize_url, generate_filename

normalize_url("https://example.com/docs/?page=2#top")   # "https://example.com/docs"
generate_filename("https://example.com/docs/intro")     # "docs_intro.png"
```

## Limitations

- The command is interactive only. It has no command-line options for its
  settings.
- The command always writes to `screenshots/`. To change the output
  directory, delays, viewport or image quality, build a `Config` and run
  `AppService` from Python.
- Sitemap index files are not followed. Only the `<url>` entries of a sitemap
  are read.
- The crawl does not obey robots.txt rules. It only reads the `Sitemap:`
  lines.