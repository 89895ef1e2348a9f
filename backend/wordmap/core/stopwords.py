"""
Word lists used by the word filter.

Global stopwords, the two-letter abbreviation allowlist, web boilerplate
fragments, and per-source boilerplate (publisher names and the like that
would otherwise dominate that source's counts).
"""

STOPWORDS: frozenset[str] = frozenset({
    # Articles, pronouns, determiners
    "a", "an", "the", "this", "that", "these", "those", "there", "here",
    "i", "me", "my", "mine", "myself", "we", "us", "our", "ours", "ourselves",
    "you", "your", "yours", "yourself", "yourselves", "he", "him", "his",
    "himself", "she", "her", "hers", "herself", "it", "its", "itself",
    "they", "them", "their", "theirs", "themselves", "what", "which", "who",
    "whom", "whose", "whoever", "whatever", "whichever",
    "each", "every", "either", "neither", "any", "anyone", "anything",
    "some", "someone", "something", "somebody", "all", "both", "few", "more",
    "most", "other", "others", "another", "such", "no", "nor", "not", "none",
    "nothing", "only", "own", "same", "so", "than", "too", "very", "much",
    "many", "several", "everyone", "everything",
    # Prepositions and conjunctions
    "about", "above", "across", "after", "against", "along", "among",
    "around", "as", "at", "before", "behind", "below", "beneath", "beside",
    "between", "beyond", "but", "by", "despite", "down", "during", "except",
    "for", "from", "in", "inside", "into", "like", "near", "of", "off", "on",
    "onto", "out", "outside", "over", "past", "since", "through",
    "throughout", "till", "to", "toward", "towards", "under", "until", "up",
    "upon", "via", "with", "within", "without", "and", "or", "if", "because",
    "while", "although", "though", "whether", "unless", "once", "then",
    "also", "just", "yet", "still", "even", "ever", "again", "already",
    "when", "where", "why", "how", "whenever", "wherever",
    # Auxiliaries and common verbs
    "am", "is", "are", "was", "were", "be", "been", "being", "have", "has",
    "had", "having", "do", "does", "did", "doing", "done", "will", "would",
    "shall", "should", "can", "could", "may", "might", "must", "ought",
    "get", "gets", "got", "getting", "make", "makes", "made", "making",
    "take", "takes", "took", "taken", "go", "goes", "went", "gone", "going",
    "come", "comes", "came", "coming", "see", "sees", "saw", "seen", "know",
    "knows", "knew", "known", "think", "thinks", "thought", "want", "wants",
    "say", "says", "said", "saying", "tell", "tells", "told", "give",
    "gives", "gave", "given", "use", "used", "uses", "using", "look",
    "looks", "need", "needs", "let", "lets", "put", "puts", "keep", "keeps",
    # Contraction remnants once apostrophes are stripped
    "don", "doesn", "didn", "isn", "aren", "wasn", "weren", "won", "wouldn",
    "shouldn", "couldn", "ll", "ve", "re",
    # Frequent but uninformative in headlines
    "new", "one", "two", "three", "first", "last", "next", "best", "top",
    "people", "year", "years", "week", "weeks", "day", "days", "time",
    "times", "today", "now", "way", "ways", "back", "well", "good", "great",
    "big", "little", "long", "old", "right", "really", "lot", "lots",
    "thing", "things", "via", "per", "amid", "latest",
    # Web leftovers
    "href", "https", "http", "com", "www", "html", "amp", "nbsp",
})

# Two-letter tokens are noise unless they are one of these
TECH_ABBREVIATIONS: frozenset[str] = frozenset({
    "ai", "ar", "vr", "xr", "ml", "ui", "ux", "os", "io", "pc", "tv", "uk",
    "eu", "un", "ev", "db", "qa", "hr", "pr", "ip", "nz", "gp", "ps", "vc",
})

# Boilerplate fragments that survive tokenization
WEB_ARTIFACTS: frozenset[str] = frozenset({
    "cookie", "cookies", "subscribe", "subscription", "newsletter", "signup",
    "login", "logout", "signin", "javascript", "browser", "click", "continue",
    "reading", "comments", "comment", "share", "shares", "tweet", "retweet",
    "advertisement", "sponsored", "promo", "privacy", "policy", "terms",
    "copyright", "rights", "reserved", "submitted", "link", "links", "permalink",
    "rss", "feed", "url", "utm", "src", "img", "jpg", "jpeg", "png", "gif",
    "webp", "mp4", "pdf", "css", "php", "aspx", "div", "span", "nbsp",
    "quot", "apos", "ndash", "mdash", "hellip", "rsquo", "lsquo", "rdquo",
    "ldquo", "read", "embed",
})

SOURCE_STOPWORDS: dict[str, frozenset[str]] = {
    "The Guardian UK": frozenset({"theguardian", "guardian"}),
    "The Guardian World": frozenset({"theguardian", "guardian"}),
    "The Guardian US": frozenset({"theguardian", "guardian"}),
    "CNN": frozenset({"cnn"}),
    "BBC News": frozenset({"bbc"}),
    "TechCrunch": frozenset({"techcrunch", "crunchbase", "disrupt"}),
    "Wired": frozenset({"wired"}),
    "NPR Main News": frozenset({"npr"}),
    "Hacker News": frozenset({"hackernews", "ycombinator", "combinator", "hn", "ask", "show"}),
    "Reddit r/all": frozenset({"reddit", "subreddit", "upvote", "downvote"}),
    "Reddit r/popular": frozenset({"reddit", "subreddit", "upvote", "downvote"}),
    "Reddit r/worldnews": frozenset({"reddit", "subreddit", "worldnews"}),
    "Reddit Tech Combined": frozenset({"reddit", "subreddit", "technology", "programming"}),
    "reddit": frozenset({"reddit", "subreddit", "upvote", "downvote"}),
    "youtube": frozenset({"youtube", "channel", "subscribe", "official", "trailer"}),
    "twitter": frozenset({"twitter", "rt", "tweet"}),
    "newsapi": frozenset({"newsapi", "removed"}),
}


def get_source_stopwords(source: str) -> frozenset[str]:
    """Stopwords specific to ``source``; empty for unknown sources."""
    return SOURCE_STOPWORDS.get(source, frozenset())
